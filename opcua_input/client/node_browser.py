"""
Node tree browser for the OPC UA input connector.

This module walks the server address space below the configured root
nodes and flattens it into the list of readable tags.
"""

import json
from typing import Any, Iterable, Optional

from asyncua import ua
from asyncua.common.node import Node

from ..errors import BrowseError, OperationCancelled
from ..logging import log_debug, log_info
from ..types import NodeAttributes, TagDefinition, TypeConverter
from ..utils import join_path, status_name, with_deadline

MAX_BROWSE_DEPTH = 10

# Forward references followed to reach children, in visiting order
CHILD_REFERENCE_TYPES = (
    (ua.ObjectIds.HasComponent, "HasComponent"),
    (ua.ObjectIds.Organizes, "Organizes"),
    (ua.ObjectIds.HasProperty, "HasProperty"),
)

BROWSED_ATTRIBUTES = [
    ua.AttributeIds.NodeClass,
    ua.AttributeIds.BrowseName,
    ua.AttributeIds.Description,
    ua.AttributeIds.AccessLevel,
    ua.AttributeIds.DataType,
]


class NodeTreeBrowser:
    """
    Builds the tag list from the server address space.

    Walks depth-first from each root, following HasComponent, Organizes
    and HasProperty references in that order. Only Variable nodes become
    tags, but every node class is descended into. The walk stops below
    ``max_depth``; that bound is the only protection against reference
    cycles unless ``skip_visited`` is enabled.
    """

    def __init__(
        self,
        max_depth: int = MAX_BROWSE_DEPTH,
        skip_visited: bool = False,
        operation_timeout: Optional[float] = None,
    ):
        """
        Initialize node tree browser.

        Args:
            max_depth: Deepest level visited below each root (root is level 0)
            skip_visited: Visit each node id at most once per browse call
            operation_timeout: Deadline in seconds for each server request
        """
        self.max_depth = max_depth
        self.skip_visited = skip_visited
        self.operation_timeout = operation_timeout

    async def browse(self, session: Any, root_node_ids: Iterable[ua.NodeId]) -> list[TagDefinition]:
        """
        Browse below every root and return the discovered tags.

        Args:
            session: SessionManager whose client is borrowed for the walk
            root_node_ids: Configured root node ids

        Returns:
            Tags in depth-first order, roots in configuration order

        Raises:
            BrowseError: If any node or reference could not be read
            OperationCancelled: If a request exceeds the deadline
        """
        client = session.client
        visited: Optional[set[ua.NodeId]] = set() if self.skip_visited else None

        tags: list[TagDefinition] = []
        for root_id in root_node_ids:
            log_debug(f"Browsing nodeID: {root_id.to_string()}")
            tags.extend(await self._browse_node(client.get_node(root_id), "", 0, visited))

        log_info(f"Detected {len(tags)} tag(s): {json.dumps([tag.to_dict() for tag in tags])}")
        return tags

    async def _browse_node(
        self,
        node: Node,
        parent_path: str,
        level: int,
        visited: Optional[set[ua.NodeId]],
    ) -> list[TagDefinition]:
        log_debug(f"node:{node.nodeid.to_string()} path:{parent_path!r} level:{level}")
        if level > self.max_depth:
            return []

        if visited is not None:
            if node.nodeid in visited:
                return []
            visited.add(node.nodeid)

        attributes = await self._read_attributes(node)
        path = join_path(parent_path, attributes.browse_name)
        log_debug(f"{level}: path:{path} node_class:{attributes.node_class.name}")

        tags: list[TagDefinition] = []
        if attributes.is_variable:
            tags.append(TagDefinition(
                node_id=node.nodeid,
                path=path,
                data_type=TypeConverter.data_type_name(attributes.data_type),
                writable=attributes.writable,
                description=attributes.description or "",
            ))

        for reference_type, reference_name in CHILD_REFERENCE_TYPES:
            children = await self._referenced_nodes(node, reference_type, reference_name)
            log_debug(f"found {len(children)} {reference_name} child refs")
            for child in children:
                tags.extend(await self._browse_node(child, path, level + 1, visited))

        return tags

    async def _read_attributes(self, node: Node) -> NodeAttributes:
        """Fetch all browsed attributes of a node in one request."""
        try:
            results = await with_deadline(
                node.read_attributes(BROWSED_ATTRIBUTES),
                self.operation_timeout,
                "attribute read",
            )
        except OperationCancelled:
            raise
        except Exception as e:
            raise BrowseError(node.nodeid, f"attribute read failed: {e}") from e

        if len(results) != len(BROWSED_ATTRIBUTES):
            raise BrowseError(
                node.nodeid,
                f"expected {len(BROWSED_ATTRIBUTES)} attribute results, got {len(results)}",
            )

        node_class_dv, browse_name_dv, description_dv, access_level_dv, data_type_dv = results

        try:
            node_class = ua.NodeClass(int(self._required(node, "NodeClass", node_class_dv)))
        except (TypeError, ValueError) as e:
            raise BrowseError(node.nodeid, f"invalid NodeClass: {e}") from e

        browse_name = self._required(node, "BrowseName", browse_name_dv)
        description = self._optional(node, "Description", description_dv)
        access_level = self._optional(node, "AccessLevel", access_level_dv)
        data_type = self._optional(node, "DataType", data_type_dv)

        return NodeAttributes(
            node_class=node_class,
            browse_name=browse_name.Name or "",
            description=getattr(description, "Text", description) if description is not None else None,
            access_level=int(access_level) if access_level is not None else None,
            data_type=data_type,
        )

    @staticmethod
    def _required(node: Node, name: str, data_value: ua.DataValue) -> Any:
        status = data_value.StatusCode or ua.StatusCode()
        if not status.is_good():
            raise BrowseError(node.nodeid, f"{name}: {status_name(status)}", status)
        value = _variant_value(data_value)
        if value is None:
            raise BrowseError(node.nodeid, f"{name}: empty value", status)
        return value

    @staticmethod
    def _optional(node: Node, name: str, data_value: ua.DataValue) -> Any:
        status = data_value.StatusCode or ua.StatusCode()
        if status.is_good():
            return _variant_value(data_value)
        if status.value == ua.StatusCodes.BadAttributeIdInvalid:
            return None
        raise BrowseError(node.nodeid, f"{name}: {status_name(status)}", status)

    async def _referenced_nodes(self, node: Node, reference_type: int, reference_name: str) -> list[Node]:
        try:
            return await with_deadline(
                node.get_referenced_nodes(
                    refs=reference_type,
                    direction=ua.BrowseDirection.Forward,
                    nodeclassmask=ua.NodeClass.Unspecified,
                    includesubtypes=True,
                ),
                self.operation_timeout,
                "reference browse",
            )
        except (OperationCancelled, BrowseError):
            raise
        except Exception as e:
            raise BrowseError(node.nodeid, f"references {reference_name}: {e}") from e


def _variant_value(data_value: ua.DataValue) -> Any:
    variant = data_value.Value
    return variant.Value if variant is not None else None
