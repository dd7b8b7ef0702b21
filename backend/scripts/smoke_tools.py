from __future__ import annotations

import argparse
import asyncio
import json

from dealcall.core.database import AsyncSessionLocal
from dealcall.tools.tool_router import ToolRouter, build_tool_context, tool_result


async def run_smoke(call_id: str, request: str) -> None:
    router = ToolRouter()

    async with AsyncSessionLocal() as session:
        context = await build_tool_context(session, call_id)

    free_slot_call = {
        "id": "smoke-find",
        "function": {"name": "find_free_meeting_slot", "arguments": json.dumps({"input": request})},
    }
    free_slots = await router.handle_tool_call(free_slot_call, context)

    book_call = {
        "id": "smoke-book",
        "function": {"name": "book_meeting_slot", "arguments": {"input": request}},
    }
    booking = await router.handle_tool_call(book_call, context)

    print(json.dumps({
        "context": context.to_dict(),
        "find_free_meeting_slot": tool_result(free_slot_call, free_slots),
        "book_meeting_slot": tool_result(book_call, booking),
    }, indent=2))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smoke test the meeting tools against a call in the DB.")
    parser.add_argument("--call-id", required=True, help="Call UUID")
    parser.add_argument("--input", default="next tuesday afternoon", help="Natural-language slot request")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run_smoke(args.call_id, args.input))


if __name__ == "__main__":
    main()
