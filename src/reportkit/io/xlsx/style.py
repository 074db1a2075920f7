"""Style specifications: deep merge, translation to xlsxwriter formats, caching.

A style specification is a nested mapping such as::

    {"border-bottom": "thin", "font": {"bold": True, "color": "red"}}

Every cell style is deep-merged onto the document's default style before it
is translated. xlsxwriter ``Format`` objects are a per-workbook, interned
resource (Excel caps the number of distinct cell formats), so
:class:`StyleCache` creates exactly one handle per distinct resolved style.
"""

import logging
import re
import threading
from collections.abc import Hashable, Mapping
from types import MappingProxyType
from typing import Any

import xlsxwriter
import xlsxwriter.format

from .conf import DEFAULT_STYLE
from .errors import StyleSpecError

logger = logging.getLogger(__name__)

################################################################################
# #region StyleVocabulary

_BORDER_STYLES: Mapping[str, int] = MappingProxyType(
    {
        "none": 0,
        "thin": 1,
        "medium": 2,
        "dashed": 3,
        "dotted": 4,
        "thick": 5,
        "double": 6,
        "hair": 7,
        "medium-dashed": 8,
        "dash-dot": 9,
        "medium-dash-dot": 10,
        "dash-dot-dot": 11,
        "medium-dash-dot-dot": 12,
        "slanted-dash-dot": 13,
    }
)

_FILL_PATTERNS: Mapping[str, int] = MappingProxyType(
    {
        "none": 0,
        "solid": 1,
        "solid-foreground": 1,
        "medium-gray": 2,
        "dark-gray": 3,
        "light-gray": 4,
        "dark-horizontal": 5,
        "dark-vertical": 6,
        "dark-down": 7,
        "dark-up": 8,
        "dark-grid": 9,
        "dark-trellis": 10,
        "light-horizontal": 11,
        "light-vertical": 12,
        "light-down": 13,
        "light-up": 14,
        "light-grid": 15,
        "light-trellis": 16,
        "gray-125": 17,
        "gray-0625": 18,
    }
)

_HORIZONTAL_ALIGNMENTS: Mapping[str, str] = MappingProxyType(
    {
        "left": "left",
        "center": "center",
        "right": "right",
        "fill": "fill",
        "justify": "justify",
        "center-across": "center_across",
        "distributed": "distributed",
    }
)

_VERTICAL_ALIGNMENTS: Mapping[str, str] = MappingProxyType(
    {
        "top": "top",
        "center": "vcenter",
        "bottom": "bottom",
        "justify": "vjustify",
        "distributed": "vdistributed",
    }
)

_UNDERLINES: Mapping[Any, int] = MappingProxyType(
    {
        True: 1,
        False: 0,
        "none": 0,
        "single": 1,
        "double": 2,
        "single-accounting": 33,
        "double-accounting": 34,
    }
)

_NAMED_COLORS = frozenset(
    {
        "black",
        "blue",
        "brown",
        "cyan",
        "gray",
        "green",
        "lime",
        "magenta",
        "navy",
        "orange",
        "pink",
        "purple",
        "red",
        "silver",
        "white",
        "yellow",
    }
)

_RE_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")

# style key -> xlsxwriter property, for the keys that take a border style name.
_BORDER_KEYS: Mapping[str, str] = MappingProxyType(
    {
        "border": "border",
        "border-top": "top",
        "border-bottom": "bottom",
        "border-left": "left",
        "border-right": "right",
    }
)

_COLOR_KEYS: Mapping[str, str] = MappingProxyType(
    {
        "border-color": "border_color",
        "border-top-color": "top_color",
        "border-bottom-color": "bottom_color",
        "border-left-color": "left_color",
        "border-right-color": "right_color",
        "fill-foreground-color": "fg_color",
        "fill-background-color": "bg_color",
    }
)

_BOOL_KEYS: Mapping[str, str] = MappingProxyType(
    {
        "wrap-text": "text_wrap",
        "shrink-to-fit": "shrink",
        "locked": "locked",
        "hidden": "hidden",
    }
)

_FONT_BOOL_KEYS: Mapping[str, str] = MappingProxyType(
    {"bold": "bold", "italic": "italic", "strikeout": "font_strikeout"}
)

# #endregion
################################################################################
# #region MergeAndFreeze


def deep_merge(
    left: Mapping[str, Any] | None, right: Mapping[str, Any] | None
) -> dict[str, Any]:
    """
    Merge ``right`` onto ``left``: nested mappings combine key-wise, any other
    value in ``right`` replaces the one in ``left``. Neither input is modified.

    Examples:
        >>> deep_merge({"font": {"name": "Arial"}}, {"font": {"bold": True}})
        {'font': {'name': 'Arial', 'bold': True}}
    """
    dict_merged: dict[str, Any] = {}
    for _key, _val in (left or {}).items():
        dict_merged[_key] = deep_merge(_val, None) if isinstance(_val, Mapping) else _val
    for _key, _val in (right or {}).items():
        val_left = dict_merged.get(_key)
        if isinstance(_val, Mapping) and isinstance(val_left, Mapping):
            dict_merged[_key] = deep_merge(val_left, _val)
        elif isinstance(_val, Mapping):
            dict_merged[_key] = deep_merge(_val, None)
        else:
            dict_merged[_key] = _val
    return dict_merged


def freeze_style(style: Any) -> Hashable:
    """Return a hashable value that is equal for structurally equal styles.

    Mappings become frozensets of items (key order does not matter), lists and
    tuples become tuples (element order does).
    """
    if isinstance(style, Mapping):
        return frozenset((_key, freeze_style(_val)) for _key, _val in style.items())
    if isinstance(style, (list, tuple)):
        return tuple(freeze_style(_val) for _val in style)
    if isinstance(style, (set, frozenset)):
        return frozenset(freeze_style(_val) for _val in style)
    return style


# #endregion
################################################################################
# #region Translation


def _lookup(table: Mapping[Any, Any], key: str, value: Any) -> Any:
    try:
        return table[value]
    except (KeyError, TypeError) as e:
        c_choices = ", ".join(repr(_k) for _k in table if isinstance(_k, str))
        raise StyleSpecError(
            f"Invalid value {value!r} for style key {key!r}; expected one of {c_choices}."
        ) from e


def convert_color(key: str, value: Any) -> str:
    if isinstance(value, str):
        c_color = value.strip().lower()
        if c_color == "grey":
            return "gray"
        if c_color in _NAMED_COLORS:
            return c_color
        if _RE_HEX_COLOR.match(c_color):
            return c_color.upper()
    elif isinstance(value, (list, tuple)) and len(value) == 3:
        if all(
            isinstance(_c, int) and not isinstance(_c, bool) and 0 <= _c <= 255
            for _c in value
        ):
            return "#{:02X}{:02X}{:02X}".format(*value)
    raise StyleSpecError(
        f"Invalid color {value!r} for style key {key!r}; expected a color name, "
        "'#RRGGBB' or an (r, g, b) triple."
    )


def _convert_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise StyleSpecError(f"Style key {key!r} expects a bool, got {value!r}.")
    return value


def _convert_number(key: str, value: Any) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StyleSpecError(f"Style key {key!r} expects a number, got {value!r}.")
    return value


def _translate_font(font: Any, props: dict[str, Any]) -> None:
    if not isinstance(font, Mapping):
        raise StyleSpecError(f"Style key 'font' expects a mapping, got {font!r}.")
    for _key, _val in font.items():
        if _val is None:
            continue
        c_key = f"font.{_key}"
        if _key == "name":
            props["font_name"] = str(_val)
        elif _key == "size":
            props["font_size"] = _convert_number(c_key, _val)
        elif _key == "color":
            props["font_color"] = convert_color(c_key, _val)
        elif _key == "underline":
            props["underline"] = _lookup(_UNDERLINES, c_key, _val)
        elif _key in _FONT_BOOL_KEYS:
            props[_FONT_BOOL_KEYS[_key]] = _convert_bool(c_key, _val)
        else:
            raise StyleSpecError(f"Unknown style key {c_key!r}.")


def translate_style(style: Mapping[str, Any]) -> dict[str, Any]:
    """
    Translate a (resolved) style specification into xlsxwriter format
    properties, suitable for ``Workbook.add_format``.

    Keys whose value is ``None`` are skipped, so ``{"font": {"name": None}}``
    clears a default. Unknown keys and values raise :class:`StyleSpecError`.

    Examples:
        >>> translate_style({"border-bottom": "thin", "font": {"bold": True}})
        {'bottom': 1, 'bold': True}
    """
    dict_props: dict[str, Any] = {}
    for _key, _val in style.items():
        if _val is None:
            continue
        if _key == "font":
            _translate_font(_val, dict_props)
        elif _key in _BORDER_KEYS:
            dict_props[_BORDER_KEYS[_key]] = _lookup(_BORDER_STYLES, _key, _val)
        elif _key in _COLOR_KEYS:
            dict_props[_COLOR_KEYS[_key]] = convert_color(_key, _val)
        elif _key in _BOOL_KEYS:
            dict_props[_BOOL_KEYS[_key]] = _convert_bool(_key, _val)
        elif _key == "fill-pattern":
            dict_props["pattern"] = _lookup(_FILL_PATTERNS, _key, _val)
        elif _key in ("alignment", "horizontal-alignment"):
            dict_props["align"] = _lookup(_HORIZONTAL_ALIGNMENTS, _key, _val)
        elif _key == "vertical-alignment":
            dict_props["valign"] = _lookup(_VERTICAL_ALIGNMENTS, _key, _val)
        elif _key in ("data-format", "num-format"):
            if isinstance(_val, bool) or not isinstance(_val, (str, int)):
                raise StyleSpecError(
                    f"Style key {_key!r} expects a format string or index, got {_val!r}."
                )
            dict_props["num_format"] = _val
        elif _key in ("indent", "rotation"):
            if isinstance(_val, bool) or not isinstance(_val, int):
                raise StyleSpecError(f"Style key {_key!r} expects an int, got {_val!r}.")
            dict_props[_key] = _val
        else:
            raise StyleSpecError(f"Unknown style key {_key!r}.")
    return dict_props


def has_num_format(style: Mapping[str, Any]) -> bool:
    return any(style.get(_key) is not None for _key in ("data-format", "num-format"))


# #endregion
################################################################################
# #region StyleCache


class StyleCache:
    """
    Memoize style specification -> ``xlsxwriter.format.Format``, keyed by the
    value of the resolved (default-merged) specification.

    One cache belongs to one workbook and is shared by all of its sheets.
    Lookup-or-create runs under a lock, so concurrent sheet writers never
    create two handles for the same resolved style.
    """

    def __init__(
        self,
        workbook: xlsxwriter.Workbook,
        *,
        default_style: Mapping[str, Any] = DEFAULT_STYLE,
    ):
        self._wb = workbook
        self._default_style = deep_merge(default_style, None)
        self._formats: dict[Hashable, xlsxwriter.format.Format] = {}
        self._lock = threading.Lock()
        self._fmt_default: xlsxwriter.format.Format | None = None

    @property
    def n_styles(self) -> int:
        return len(self._formats)

    @property
    def default_style(self) -> dict[str, Any]:
        return deep_merge(self._default_style, None)

    def resolve(
        self,
        style: Mapping[str, Any] | None = None,
        *,
        num_format_fallback: str | None = None,
    ) -> xlsxwriter.format.Format:
        """
        Return the interned format for ``style`` merged onto the default style.

        ``num_format_fallback`` is applied only when the resolved style has no
        number format of its own (used for dates and times).
        """
        if not style and num_format_fallback is None:
            if self._fmt_default is None:
                self._fmt_default = self._resolve_merged(self._default_style)
            return self._fmt_default

        dict_resolved = deep_merge(self._default_style, style)
        if num_format_fallback is not None and not has_num_format(dict_resolved):
            dict_resolved["data-format"] = num_format_fallback
        return self._resolve_merged(dict_resolved)

    def _resolve_merged(
        self, resolved: Mapping[str, Any]
    ) -> xlsxwriter.format.Format:
        key_style = freeze_style(resolved)
        with self._lock:
            fmt = self._formats.get(key_style)
            if fmt is None:
                fmt = self._wb.add_format(translate_style(resolved))
                self._formats[key_style] = fmt
                logger.debug("Created cell format #%d: %r", len(self._formats), resolved)
        return fmt


# #endregion
################################################################################
