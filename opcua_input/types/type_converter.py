"""
OPC UA data type naming and value rendering.

This module maps OPC UA DataType node ids to the semantic type names
reported in tag definitions, and renders read values into the canonical
text payloads delivered to the host pipeline.
"""

from decimal import Decimal
from typing import Any, Optional
import math
import struct

from asyncua import ua


class TypeConverter:
    """
    Converts OPC UA types and values for the input connector.

    This class provides:
    - Type naming (DataType node id -> semantic type name)
    - Value rendering (Variant -> canonical text payload)
    """

    # Namespace 0 DataType ids -> semantic type names
    DATA_TYPE_NAMES: dict[int, str] = {
        # Date and time
        ua.ObjectIds.DateTime: "datetime",
        ua.ObjectIds.UtcTime: "datetime",

        # Boolean
        ua.ObjectIds.Boolean: "bool",

        # Signed integers
        ua.ObjectIds.SByte: "int8",
        ua.ObjectIds.Int16: "int16",
        ua.ObjectIds.Int32: "int32",
        ua.ObjectIds.Int64: "int64",

        # Unsigned integers
        ua.ObjectIds.Byte: "uint8",
        ua.ObjectIds.UInt16: "uint16",
        ua.ObjectIds.UInt32: "uint32",
        ua.ObjectIds.UInt64: "uint64",

        # Floating point
        ua.ObjectIds.Float: "float32",
        ua.ObjectIds.Double: "float64",

        # Strings
        ua.ObjectIds.String: "string",
    }

    INTEGER_VARIANT_TYPES = frozenset({
        ua.VariantType.SByte,
        ua.VariantType.Byte,
        ua.VariantType.Int16,
        ua.VariantType.UInt16,
        ua.VariantType.Int32,
        ua.VariantType.UInt32,
        ua.VariantType.Int64,
        ua.VariantType.UInt64,
    })

    @classmethod
    def data_type_name(cls, data_type: Optional[ua.NodeId]) -> str:
        """
        Get the semantic type name for a DataType node id.

        Args:
            data_type: DataType attribute of a node, or None if absent

        Returns:
            Semantic name from the lookup table, the node id text for
            unknown types, or an empty string when absent
        """
        if data_type is None:
            return ""

        if data_type.NamespaceIndex == 0 and isinstance(data_type.Identifier, int):
            name = cls.DATA_TYPE_NAMES.get(data_type.Identifier)
            if name is not None:
                return name

        return data_type.to_string()

    @classmethod
    def render_value(cls, variant: Optional[ua.Variant]) -> Optional[bytes]:
        """
        Render a read value as a canonical text payload.

        Args:
            variant: Value of a DataValue returned by a read

        Returns:
            UTF-8 encoded payload, or None if the value type is not supported
        """
        if variant is None:
            return None

        value = variant.Value
        variant_type = variant.VariantType

        # Arrays and matrices are not rendered
        if getattr(variant, "is_array", False) or isinstance(value, (list, tuple)):
            return None

        text = cls._render_scalar(variant_type, value)
        if text is None:
            return None
        return text.encode("utf-8")

    @classmethod
    def _render_scalar(cls, variant_type: ua.VariantType, value: Any) -> Optional[str]:
        if variant_type == ua.VariantType.Boolean:
            if isinstance(value, bool):
                return "true" if value else "false"
            return None

        if variant_type in cls.INTEGER_VARIANT_TYPES:
            if isinstance(value, int) and not isinstance(value, bool):
                return str(value)
            return None

        if variant_type == ua.VariantType.Float:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return cls.format_float(value, 32)
            return None

        if variant_type == ua.VariantType.Double:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return cls.format_float(value, 64)
            return None

        if variant_type == ua.VariantType.String:
            if value is None:
                return ""
            if isinstance(value, str):
                return value
            return None

        return None

    @classmethod
    def format_float(cls, value: float, bits: int = 64) -> str:
        """
        Format a float with the shortest decimal that round-trips.

        Uses positional notation (no exponent) and drops a trailing
        ``.0``, so ``42.0`` renders as ``42`` and a 32-bit ``0.1``
        renders as ``0.1``.

        Args:
            value: Float value to format
            bits: Width of the source type, 32 or 64
        """
        value = float(value)
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "+Inf" if value > 0 else "-Inf"

        if bits == 32:
            shortest = cls._shortest_float32(value)
        else:
            shortest = repr(value)

        text = format(Decimal(shortest), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    @classmethod
    def _shortest_float32(cls, value: float) -> str:
        """Shortest decimal text that parses back to the same float32."""
        target = cls._to_float32(value)
        for digits in range(1, 10):
            text = f"{target:.{digits}g}"
            try:
                if cls._to_float32(float(text)) == target:
                    return text
            except OverflowError:
                continue
        return repr(target)

    @staticmethod
    def _to_float32(value: float) -> float:
        return struct.unpack('<f', struct.pack('<f', value))[0]
