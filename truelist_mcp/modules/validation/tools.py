import json
from typing import Annotated, Any, List

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from truelist_mcp.modules.validation.client import TruelistClient
from truelist_mcp.modules.validation.dispatcher import BatchDispatcher
from truelist_mcp.modules.validation.schemas import MAX_BATCH_EMAILS, EmailRequest
from truelist_mcp.utils import logger

VALIDATE_EMAIL_DESCRIPTION = (
    "Validate an email address for deliverability using Truelist. Returns state "
    "(ok/invalid/risky/accept_all/unknown), sub_state, and metadata like domain, "
    "canonical, mx_record, first_name, last_name, and verified_at."
)
VALIDATE_EMAILS_DESCRIPTION = (
    "Validate multiple email addresses for deliverability in a single batch. Returns "
    "an array of results with state and sub_state for each email, in the order given. "
    f"Maximum {MAX_BATCH_EMAILS} emails per request."
)
CHECK_ACCOUNT_DESCRIPTION = (
    "Check your Truelist account info including name, email, plan, and admin status."
)


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2)


async def validate_email(client: TruelistClient, email: str) -> str:
    """Single address lookup; remote errors propagate to the caller"""
    EmailRequest(email=email)
    outcome = await client.validate_one(email)
    logger.info(f"Validated {email}: {outcome.state.value}")
    return to_json(outcome.to_dict())


async def validate_emails(dispatcher: BatchDispatcher, emails: List[str]) -> str:
    outcomes = await dispatcher.validate_batch(emails)
    return to_json([outcome.to_batch_dict() for outcome in outcomes])


async def check_account(client: TruelistClient) -> str:
    account = await client.account_info()
    return to_json(account)


def register_tools(server: FastMCP, client: TruelistClient, dispatcher: BatchDispatcher):
    """Expose the Truelist tools on an MCP server"""

    @server.tool(name="validate_email", description=VALIDATE_EMAIL_DESCRIPTION)
    async def validate_email_tool(email: str) -> str:
        return await validate_email(client, email)

    @server.tool(name="validate_emails", description=VALIDATE_EMAILS_DESCRIPTION)
    async def validate_emails_tool(
        emails: Annotated[List[str], Field(min_length=1, max_length=MAX_BATCH_EMAILS)],
    ) -> str:
        return await validate_emails(dispatcher, emails)

    @server.tool(name="check_account", description=CHECK_ACCOUNT_DESCRIPTION)
    async def check_account_tool() -> str:
        return await check_account(client)

    logger.info("Registered tools: validate_email, validate_emails, check_account")
