"""
Rebalancing MCP Server

Exposes the weekly stock-rebalancing analysis to the presentation layer:
running an analysis, moving transfer proposals through their lifecycle and
the report views (transfer history, shop performance, balancing trend).

Tables used: Shops, Articles, Stock (read), TransferProposals (GSI: StatusTimeIndex),
AnalysisRuns, Decisions
"""

import json
import logging
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
import env_loader  # noqa: F401

from datetime import datetime
from typing import Dict, List, Optional
from mcp.server import Server
from mcp.types import Tool, TextContent

from stock_rebalancer.analysis import WeeklyAnalysisService
from stock_rebalancer.errors import RebalancerError

logger = logging.getLogger(__name__)

app = Server("stock-rebalancing")

_service: Optional[WeeklyAnalysisService] = None


def get_service() -> WeeklyAnalysisService:
    global _service
    if _service is None:
        _service = WeeklyAnalysisService.from_env()
    return _service


def set_service(service: Optional[WeeklyAnalysisService]) -> None:
    global _service
    _service = service


def _error(e: Exception) -> Dict:
    return {"success": False, "error": str(e), "error_type": type(e).__name__}


def _result(data):
    return [TextContent(type="text", text=json.dumps(data, indent=2, ensure_ascii=False, default=str))]


@app.list_tools()
async def list_tools() -> List[Tool]:
    return [
        Tool(name="run_analysis", description="Run the weekly stock analysis and propose transfers between shops",
             inputSchema={"type": "object", "properties": {}}),
        Tool(name="transition_proposal", description="Apply a lifecycle command to a transfer proposal",
             inputSchema={"type": "object", "properties": {
                 "proposal_id": {"type": "string"},
                 "command": {"type": "string", "enum": ["approve", "reject", "mark_in_transit", "mark_received"]}
             }, "required": ["proposal_id", "command"]}),
        Tool(name="list_proposals", description="List transfer proposals, optionally by status",
             inputSchema={"type": "object", "properties": {
                 "status": {"type": "string", "enum": ["proposed", "validated", "in_transit", "received", "rejected"]}
             }}),
        Tool(name="filter_transfer_history", description="Transfer history filtered by period, status and category",
             inputSchema={"type": "object", "properties": {
                 "period": {"type": "string", "enum": ["last_month", "last_3_months", "all"], "default": "all"},
                 "status": {"type": "string", "default": "all"},
                 "category": {"type": "string", "default": "all"}
             }}),
        Tool(name="shop_performance", description="Rupture / overstock / normal rate per shop from the latest analysis",
             inputSchema={"type": "object", "properties": {}}),
        Tool(name="balancing_rate_history", description="Monthly trend of rupture / overstock / normal percentages",
             inputSchema={"type": "object", "properties": {}}),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> List[TextContent]:
    handler = HANDLERS.get(name)
    if not handler:
        raise ValueError(f"Unknown tool: {name}")
    return _result(handler(arguments or {}))


# --- Implementation ---

def run_analysis() -> Dict:
    try:
        result = get_service().run_analysis()
        return {"success": True, "data": result.to_dict()}
    except RebalancerError as e:
        logger.error("Analysis failed: %s", e)
        return _error(e)


def transition_proposal(proposal_id: str, command: str) -> Dict:
    try:
        proposal = get_service().transition(proposal_id, command)
        return {"success": True, "data": proposal.to_dict()}
    except (RebalancerError, ValueError) as e:
        return _error(e)


def list_proposals(status: Optional[str] = None) -> Dict:
    try:
        proposals = get_service().list_proposals(status)
        return {"success": True, "count": len(proposals), "data": [p.to_dict() for p in proposals]}
    except (RebalancerError, ValueError) as e:
        return _error(e)


def filter_transfer_history(period: str = "all", status: str = "all", category: str = "all",
                            now: Optional[datetime] = None) -> Dict:
    try:
        records = get_service().filter_transfer_history(
            filters={"period": period, "status": status, "category": category}, now=now
        )
        return {"success": True, "count": len(records), "data": [r.to_dict() for r in records]}
    except (RebalancerError, ValueError) as e:
        return _error(e)


def shop_performance() -> Dict:
    return {"success": True, "data": [p.to_dict() for p in get_service().shop_performance()]}


def balancing_rate_history() -> Dict:
    try:
        return {"success": True, "data": [p.to_dict() for p in get_service().balancing_rate_history()]}
    except RebalancerError as e:
        return _error(e)


HANDLERS = {
    "run_analysis": lambda a: run_analysis(),
    "transition_proposal": lambda a: transition_proposal(a["proposal_id"], a["command"]),
    "list_proposals": lambda a: list_proposals(a.get("status")),
    "filter_transfer_history": lambda a: filter_transfer_history(
        a.get("period", "all"), a.get("status", "all"), a.get("category", "all")),
    "shop_performance": lambda a: shop_performance(),
    "balancing_rate_history": lambda a: balancing_rate_history(),
}


if __name__ == "__main__":
    import asyncio
    from mcp.server.stdio import stdio_server

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    async def run():
        async with stdio_server() as (read, write):
            await app.run(read, write, app.create_initialization_options())

    asyncio.run(run())
