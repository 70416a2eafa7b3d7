"""
Flow registry: loads campaign call flows from YAML files.

Each file describes one campaign. Either a list of flows under
``call_flows`` (the first one is the master flow) or a single flow at the
top level is accepted:

    campaign: Medicare Outreach
    call_flows:
      - name: Medicare Outreach
        default_exit: graceful_exit
        steps:
          greeting: {...}
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from config.flow_definition import CallFlowGraph


logger = logging.getLogger(__name__)


def _parse_campaign(data: dict, fallback_name: str) -> Tuple[str, List[CallFlowGraph]]:
    campaign = data.get("campaign") or data.get("name") or fallback_name
    raw_flows = data.get("call_flows")
    if raw_flows is None:
        raw_flows = [data]
    flows = [CallFlowGraph.from_dict(raw, name=campaign) for raw in raw_flows]
    return campaign, flows


class FlowRegistry:
    """
    In-memory store of campaign call flows, keyed by campaign name.
    """

    def __init__(self, flows_dir: Optional[str] = None):
        self._flows: Dict[str, List[CallFlowGraph]] = {}
        if flows_dir:
            self._load_all(flows_dir)

    def _load_all(self, flows_dir: str) -> None:
        """Load all .yaml / .yml files from the flows directory."""
        path = Path(flows_dir)
        if not path.is_dir():
            logger.warning("Flows directory does not exist: %s", flows_dir)
            return
        for yaml_file in sorted(path.glob("*.yaml")) + sorted(path.glob("*.yml")):
            try:
                with open(yaml_file, encoding="utf-8") as f:
                    data = yaml.safe_load(f)
                if not data:
                    continue
                campaign, flows = _parse_campaign(data, yaml_file.stem)
            except Exception as exc:
                logger.error("Failed to load call flows from %s: %s", yaml_file, exc)
                continue
            if campaign in self._flows:
                logger.warning("Campaign '%s' from %s replaces an earlier definition", campaign, yaml_file.name)
            self._flows[campaign] = flows
            logger.info("Loaded campaign '%s' from %s (%d flows, %d master steps)",
                        campaign, yaml_file.name, len(flows), len(flows[0].steps) if flows else 0)

    def add(self, campaign: str, graph: CallFlowGraph) -> None:
        self._flows.setdefault(campaign, []).append(graph.validate())

    def get(self, campaign: str) -> List[CallFlowGraph]:
        return list(self._flows.get(campaign, []))

    def get_names(self) -> List[str]:
        return list(self._flows.keys())

    def master_flow(self, campaign: str) -> Optional[CallFlowGraph]:
        flows = self._flows.get(campaign)
        return flows[0] if flows else None
