from __future__ import annotations

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "find_free_meeting_slot",
            "description": "Find available meeting slots based on user requirements. Call this before booking a meeting to check availability.",
            "parameters": {
                "type": "object",
                "properties": {
                    "input": {
                        "type": "string",
                        "description": "Natural language description of meeting requirements (e.g., 'next Tuesday afternoon for 1 hour')",
                    },
                },
                "required": ["input"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "book_meeting_slot",
            "description": "Book a specific meeting slot. Only call this after finding available slots and getting confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "input": {
                        "type": "string",
                        "description": "Natural language description of the meeting to book (e.g., 'Tuesday at 2pm with John for 1 hour, discuss Q4 planning')",
                    },
                },
                "required": ["input"],
            },
        },
    },
]

TOOL_NAMES = frozenset(tool["function"]["name"] for tool in TOOLS)
