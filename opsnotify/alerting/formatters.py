"""Pure functions that turn an Alert into provider-specific payloads."""

from __future__ import annotations

import datetime
from typing import Any

from opsnotify.core.types import Alert, AlertSeverity

# ── Severity mappings ───────────────────────────────────────────

_PAGERDUTY_SEVERITY: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "critical",
    AlertSeverity.ERROR: "error",
    AlertSeverity.WARNING: "warning",
    AlertSeverity.INFO: "info",
}

_OPSGENIE_PRIORITY: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "P1",
    AlertSeverity.ERROR: "P2",
    AlertSeverity.WARNING: "P3",
    AlertSeverity.INFO: "P5",
}

_SLACK_COLORS: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "#dc3545",  # red
    AlertSeverity.ERROR: "#fd7e14",     # orange
    AlertSeverity.WARNING: "#ffc107",   # yellow
    AlertSeverity.INFO: "#17a2b8",      # teal
}

_SLACK_EMOJI: dict[AlertSeverity, str] = {
    AlertSeverity.CRITICAL: "\U0001f6a8",
    AlertSeverity.ERROR: "❌",
    AlertSeverity.WARNING: "⚠️",
    AlertSeverity.INFO: "ℹ️",
}

_DISCORD_COLORS: dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 0xDC3545,
    AlertSeverity.ERROR: 0xFD7E14,
    AlertSeverity.WARNING: 0xFFC107,
    AlertSeverity.INFO: 0x17A2B8,
}


def _iso(now: datetime.datetime | None) -> str:
    ts = now or datetime.datetime.now(datetime.UTC)
    return ts.isoformat().replace("+00:00", "Z")


# ── PagerDuty ───────────────────────────────────────────────────


def pagerduty_trigger_payload(
    alert: Alert,
    routing_key: str,
    now: datetime.datetime | None = None,
) -> dict[str, Any]:
    """Events API v2 ``trigger`` body."""
    return {
        "routing_key": routing_key,
        "event_action": "trigger",
        "dedup_key": alert.dedup_key,
        "payload": {
            "summary": alert.title,
            "source": alert.source,
            "severity": _PAGERDUTY_SEVERITY[alert.severity],
            "timestamp": _iso(now),
            "custom_details": {"description": alert.description, **alert.details},
        },
        "links": [{"href": link.href, "text": link.text} for link in alert.links],
        "images": [],
    }


def pagerduty_resolve_payload(dedup_key: str, routing_key: str) -> dict[str, Any]:
    """Events API v2 ``resolve`` body."""
    return {
        "routing_key": routing_key,
        "event_action": "resolve",
        "dedup_key": dedup_key,
    }


# ── Opsgenie ────────────────────────────────────────────────────


def opsgenie_alert_payload(
    alert: Alert,
    default_tags: list[str] | None = None,
) -> dict[str, Any]:
    """Opsgenie ``POST /v2/alerts`` body."""
    return {
        "message": alert.title,
        "description": alert.description,
        "priority": _OPSGENIE_PRIORITY[alert.severity],
        "source": alert.source,
        "alias": alert.dedup_key,
        "tags": list(alert.tags) or list(default_tags or []),
        "details": dict(alert.details),
        "entity": alert.source,
    }


# ── Slack ───────────────────────────────────────────────────────


def slack_payload(
    alert: Alert,
    now: datetime.datetime | None = None,
) -> dict[str, Any]:
    """Incoming-webhook body: one colour-coded attachment of Block Kit blocks."""
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{_SLACK_EMOJI[alert.severity]} {alert.title}",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": alert.description or alert.title},
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": (
                        f"*Source:* {alert.source} | "
                        f"*Severity:* {alert.severity.value.upper()} | "
                        f"*Time:* {_iso(now)}"
                    ),
                }
            ],
        },
    ]

    if alert.details:
        details_text = "\n".join(f"*{k}:* {v}" for k, v in alert.details.items())
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": details_text}})

    if alert.links:
        blocks.append({
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": link.text},
                    "url": link.href,
                }
                for link in alert.links
            ],
        })

    return {
        "attachments": [
            {"color": _SLACK_COLORS[alert.severity], "blocks": blocks},
        ],
    }


# ── Discord ─────────────────────────────────────────────────────


def discord_payload(
    alert: Alert,
    footer_text: str,
    now: datetime.datetime | None = None,
) -> dict[str, Any]:
    """Webhook body with a single colour-coded embed."""
    fields = [
        {"name": "Source", "value": alert.source, "inline": True},
        {"name": "Severity", "value": alert.severity.value.upper(), "inline": True},
    ]
    fields.extend(
        {"name": k, "value": v, "inline": True} for k, v in alert.details.items()
    )
    embed: dict[str, Any] = {
        "title": alert.title,
        "color": _DISCORD_COLORS[alert.severity],
        "fields": fields,
        "timestamp": _iso(now),
        "footer": {"text": footer_text},
    }
    if alert.description:
        embed["description"] = alert.description
    return {"embeds": [embed]}
