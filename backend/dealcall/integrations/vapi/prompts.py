from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from dealcall.tools.tool_definitions import TOOLS

# ---------------------------------------------------------------------------
# Assistant defaults shared by the phone and browser call paths
# ---------------------------------------------------------------------------

TRANSCRIBER = {
    "provider": "deepgram",
    "model": "nova-2",
    "language": "en-US",
}

VOICE = {
    "provider": "cartesia",
    "voiceId": "57dcab65-68ac-45a6-8480-6c4c52ec1cd1",
}

MODEL_PROVIDER = "openai"
MODEL_NAME = "gpt-4o-mini"
MODEL_TEMPERATURE = 0.7
MAX_DURATION_SECONDS = 900
BACKGROUND_SOUND = "office"


def format_currency(value: Optional[float]) -> str:
    return f"€{(value or 0):,.0f}"


def format_company_info(company) -> str:
    banker = company.owner_banker
    return "\n".join(
        [
            f"Company: {company.name}",
            f"Industry: {company.industry}",
            f"Geography: {company.geography}",
            f"Revenue: {format_currency(company.revenue)}",
            f"EBITDA: {format_currency(company.ebitda)}",
            f"Headcount: {(company.headcount or 0):,}",
            f"Deal Stage: {company.deal_stage}",
            f"Estimated Deal Size: {format_currency(company.estimated_deal_size)}",
            f"Likelihood to Sell: {company.likelihood_to_sell or 0}%",
            f"Owner: {banker.name if banker else 'Unknown'}",
        ]
    )


def render_system_prompt(
    *,
    owner_banker_name: str,
    company_name: str,
    company_info: str,
    previous_summaries: List[str],
    today: Optional[date] = None,
) -> str:
    """Render the outreach assistant's system prompt."""

    today = today or date.today()
    if previous_summaries:
        history = "\n".join(f"- {summary}" for summary in previous_summaries)
    else:
        history = "- No previous conversations."

    return f"""You are an AI sales assistant helping {owner_banker_name} with a sales call regarding {company_name}.
Here is the company information:
{company_info}

Your goal is to help qualify this lead, understand their interest in selling, and identify any concerns or objections.
Be professional, friendly, and focused on gathering information.
Speak naturally with appropriate pauses.
Listen carefully before responding and don't interrupt the customer.

## Information

- Today's date is {today.isoformat()}.

### Previous conversations

{history}

## Scenarios

### 1. The customer is not interested in selling their company.

If the customer is not interested in selling their company, you should thank them for their time and end the call.

### 2. The customer is interested in selling their company.

The goal is to get the customer to agree to a meeting with the owner banker.
Propose a meeting for the customer to meet with the owner banker.
Use the tools to find a free meeting slot first.
Once the customer agrees on a slot, book the slot using the tool.
Keep the conversation going while you wait for tool results.
"""


def build_first_message(company_name: str, owner_banker_name: str) -> str:
    return (
        f"Hi, thanks for taking my call. I'm reaching out on behalf of {owner_banker_name}, "
        f"a partner at our equity investments firm. They specifically asked me to connect with you "
        f"because they've been following {company_name} and were impressed by your market position. "
        f"I was curious, when their team reached out, what caught your attention?"
    )


def build_assistant(company, previous_summaries: List[str]) -> Dict[str, Any]:
    """Assistant definition used for both outbound phone and browser calls."""

    banker_name = company.owner_banker.name
    system_prompt = render_system_prompt(
        owner_banker_name=banker_name,
        company_name=company.name,
        company_info=format_company_info(company),
        previous_summaries=previous_summaries,
    )

    return {
        "transcriber": dict(TRANSCRIBER),
        "model": {
            "provider": MODEL_PROVIDER,
            "model": MODEL_NAME,
            "temperature": MODEL_TEMPERATURE,
            "messages": [
                {"role": "system", "content": system_prompt},
            ],
            "tools": TOOLS,
        },
        "voice": dict(VOICE),
        "backgroundSound": BACKGROUND_SOUND,
        "maxDurationSeconds": MAX_DURATION_SECONDS,
        "name": f"{company.name} Sales Call",
        "firstMessage": build_first_message(company.name, banker_name),
    }


def build_outbound_payload(phone_number_id: str, customer_number: str, assistant: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "phoneNumberId": phone_number_id,
        "customer": {
            "number": customer_number,
        },
        "assistant": assistant,
    }
