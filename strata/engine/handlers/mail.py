"""Mail action executors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...actions.schema import SendEmail
from ...constants import ERROR_MESSAGES

if TYPE_CHECKING:
    from ..dispatcher import ExecutionDispatcher, TurnContext

logger = logging.getLogger(__name__)


async def exec_send_email(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: SendEmail
) -> None:
    """
    Preview → send one message per recipient → read each one back.

    The user may edit recipients, subject and body in the preview; a cancelled
    preview sends nothing.
    """
    context = f"send_email#{idx}"
    recipients = [r.strip() for r in data.to if r and r.strip()]
    if not recipients:
        logger.info("[%s] skipped: no recipients", context)
        turn.reply("Who should I send that email to?")
        return
    if dispatcher.mail is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return
    if not turn.access_token:
        logger.warning("[%s] missing Google token", context)
        turn.failed_emails += len(recipients)
        turn.reply("I need you to reconnect Google before I can send that email.")
        return

    decision = await dispatcher.mail_bridge.request_preview(recipients, data.subject, data.body)
    if not decision.send:
        logger.info("[%s] cancelled from preview", context)
        turn.reply("Okay, I didn't send that email.")
        return

    final_recipients = [r.strip() for r in decision.to if r and r.strip()]
    if not final_recipients:
        turn.reply("The preview had no recipients left, so I didn't send anything.")
        return

    token = turn.access_token
    sent: list[str] = []
    unconfirmed: list[str] = []
    failed: list[str] = []
    for recipient in final_recipients:
        result = await dispatcher.mutate(
            f"{context}→{recipient}",
            lambda key, to=recipient: dispatcher.mail.send_email(
                token, to, decision.subject, decision.body, idempotency_key=key,
            ),
        )
        if not result.ok:
            logger.warning("[%s] send to %s failed: %s", context, recipient, result.error_message())
            failed.append(recipient)
            continue

        # Sent is only reported once the message can be read back.
        readback = await dispatcher.mail.get_message(token, result.value)
        if not readback.ok:
            logger.warning(
                "[%s] sent %s to %s but could not read it back: %s",
                context, result.value, recipient, readback.error_message(),
            )
            unconfirmed.append(recipient)
            continue
        sent.append(recipient)

    turn.sent_emails += len(sent)
    turn.failed_emails += len(failed) + len(unconfirmed)
    if sent:
        turn.mail_mutated = True

    if sent and not failed and not unconfirmed:
        turn.reply(f"Sent \"{decision.subject}\" to {', '.join(sent)}.")
        return

    parts = []
    if sent:
        parts.append(f"Sent to {', '.join(sent)}.")
    if failed:
        parts.append(f"I couldn't send to {', '.join(failed)}.")
    if unconfirmed:
        parts.append(f"I couldn't confirm delivery to {', '.join(unconfirmed)} in Gmail.")
    parts.append("Want me to try again?")
    turn.reply(" ".join(parts))


def exec_mail_passthrough(idx: int, tag: str, data) -> None:
    """explain/reply/forward/delete are recorded only; the mail contract exposes sending."""
    logger.info("[%d] %s for email %s recorded (no mail mutation available)", idx, tag, data.email_id)
