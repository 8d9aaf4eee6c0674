"""Plain-text email templates."""

from typing import Any

from pledge.services.notifications.schemas import NotificationKind, RenderedMessage


def _campaign_approved(data: dict[str, Any]) -> RenderedMessage:
    title = data.get("title") or f"Campaign #{data.get('campaign_id')}"
    lines = [
        f'Your campaign "{title}" has been approved and is now live.',
        "",
        f"Campaign ID: {data.get('campaign_id')}",
    ]
    if data.get("campaign_url"):
        lines.append(f"View it: {data['campaign_url']}")
    if data.get("tx_url"):
        lines.append(f"Transaction: {data['tx_url']}")
    return RenderedMessage(subject=f"Your campaign is live: {title}", text="\n".join(lines))


def _purchase_receipt(data: dict[str, Any]) -> RenderedMessage:
    title = data.get("title") or f"Campaign #{data.get('campaign_id')}"
    token_ids = ", ".join(f"#{t}" for t in data.get("token_ids", [])) or "pending"
    lines = [
        f'Thank you for supporting "{title}".',
        "",
        f"Editions: {data.get('quantity')}",
        f"Amount: ${data.get('amount_usd')}",
    ]
    if data.get("tip_usd"):
        lines.append(f"Tip: ${data['tip_usd']}")
    lines.append(f"Token IDs: {token_ids}")
    if data.get("tx_url"):
        lines.append(f"Transaction: {data['tx_url']}")
    return RenderedMessage(subject=f"Your receipt for {title}", text="\n".join(lines))


def _edition_sold(data: dict[str, Any]) -> RenderedMessage:
    title = data.get("title") or f"Campaign #{data.get('campaign_id')}"
    lines = [
        f'Someone just bought {data.get("quantity")} edition(s) of "{title}".',
        "",
        f"Amount: ${data.get('amount_usd')}",
        f"Editions sold: {data.get('sold_count')}",
        f"Total raised: ${data.get('total_raised')}",
    ]
    if data.get("campaign_url"):
        lines.append(f"View it: {data['campaign_url']}")
    return RenderedMessage(subject=f"New supporter for {title}", text="\n".join(lines))


TEMPLATES = {
    NotificationKind.CAMPAIGN_APPROVED: _campaign_approved,
    NotificationKind.PURCHASE_RECEIPT: _purchase_receipt,
    NotificationKind.EDITION_SOLD: _edition_sold,
}


def render_template(kind: NotificationKind | str, data: dict[str, Any]) -> RenderedMessage:
    """Render a template.

    Args:
        kind: Template kind
        data: Template variables

    Returns:
        Rendered subject and body

    Raises:
        ValueError: If the kind is unknown
    """
    return TEMPLATES[NotificationKind(kind)](data)
