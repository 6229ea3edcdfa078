"""Node role classification."""

import re
from enum import Enum
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from .models import ClusterNode


class NodeRole(Enum):
    """Role of a cluster node."""
    HEAD = "HeadNode"
    COMPUTE = "ComputeNode"
    BROKER = "BrokerNode"
    UNKNOWN = "Unknown"


# Checked in order; the first pattern that matches "<roles> <template> <name>" wins
ROLE_RULES: List[Tuple[NodeRole, Pattern]] = [
    (NodeRole.HEAD, re.compile(r'head', re.IGNORECASE)),
    (NodeRole.BROKER, re.compile(r'broker|wcf', re.IGNORECASE)),
    (NodeRole.COMPUTE, re.compile(r'compute|workstation|azure|paas|iaas|unmanaged|linux', re.IGNORECASE)),
]


def _short_name(host: str) -> str:
    return host.split('.')[0].strip().lower()


def classify_node(node: ClusterNode, scheduler: Optional[str] = None,
                  rules: Iterable[Tuple[NodeRole, Pattern]] = ROLE_RULES) -> NodeRole:
    """
    Classify a node from its role tags, template and name.

    A node matching no rule whose name equals the scheduler host is the head
    node.
    """
    haystack = " ".join(filter(None, (node.roles, node.template, node.name)))
    for role, pattern in rules:
        if pattern.search(haystack):
            return role

    if scheduler and node.name and _short_name(node.name) == _short_name(scheduler):
        return NodeRole.HEAD

    return NodeRole.UNKNOWN


def role_breakdown(nodes: Iterable[ClusterNode], scheduler: Optional[str] = None) -> Dict[NodeRole, List[ClusterNode]]:
    """Group nodes by role, every role present as a key."""
    groups: Dict[NodeRole, List[ClusterNode]] = {role: [] for role in NodeRole}
    for node in nodes:
        groups[classify_node(node, scheduler)].append(node)
    return groups
