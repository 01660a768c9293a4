"""
Semantic type aliases for varzcollector.

These aliases make signatures self-documenting by replacing raw types like
str, int and float with names that say what the value means.
"""

from collections.abc import Mapping, Sequence
from typing import Any

# Time and timestamp types
type Timestamp = int
type DurationSeconds = float
type LatencyMilliseconds = int

# Component identity types
type ComponentType = str
type InstanceId = str
type HostPort = str
type HostAddress = str
type InstanceIndex = int
type Credentials = Sequence[str]

# Metric types
type MetricName = str
type TagKey = str
type TagScalar = str | int | float | bool
type TagValue = TagScalar | Sequence[TagScalar]
type Tags = dict[TagKey, TagValue]

# Payload types
type JsonDict = dict[str, Any]
type Varz = Mapping[str, Any]
type Subject = str
type PortNumber = int
type UrlString = str
