from typing import List, Optional

from src.services.integrations.notifications import Notifier


class DisputeNotifier:
    """Message templates for everyone involved in a dispute."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    async def dispute_created(self, filer_id: str, dispute_id: str, ticket_id: str) -> None:
        await self.notifier.send(
            filer_id,
            "dispute",
            "Dispute Filed",
            "Your dispute has been successfully filed and will be reviewed by our team.",
            priority="medium",
            metadata={"disputeId": dispute_id, "tradeId": ticket_id, "action": "created"},
        )

    async def filed_against(self, counterparty_id: str, dispute_id: str, ticket_id: str) -> None:
        await self.notifier.send(
            counterparty_id,
            "dispute",
            "Dispute Filed Against You",
            "A dispute has been filed for one of your trades. Please respond with your evidence.",
            priority="high",
            metadata={"disputeId": dispute_id, "tradeId": ticket_id},
        )

    async def admin_new_dispute(self, admin_ids: List[str], dispute_id: str, ticket_id: str) -> None:
        for admin_id in admin_ids:
            await self.notifier.send(
                admin_id,
                "dispute",
                "New Dispute Filed",
                "A new user dispute requires your attention.",
                priority="high",
                metadata={"disputeId": dispute_id, "tradeId": ticket_id, "action": "admin_review"},
            )

    async def evidence_submitted(self, user_id: str, dispute_id: str, ticket_id: str) -> None:
        await self.notifier.send(
            user_id,
            "dispute_update",
            "New Evidence Submitted",
            "New evidence has been submitted for your dispute.",
            priority="medium",
            metadata={"disputeId": dispute_id, "tradeId": ticket_id, "action": "view_evidence"},
        )

    async def new_comment(self, user_id: str, dispute_id: str, ticket_id: str) -> None:
        await self.notifier.send(
            user_id,
            "dispute_update",
            "New Comment on Dispute",
            "There is a new comment on your dispute thread.",
            priority="medium",
            metadata={"disputeId": dispute_id, "tradeId": ticket_id, "action": "view_comments"},
        )

    async def status_update(self, user_id: str, dispute_id: str, status: str, resolution: Optional[str] = None) -> None:
        priority = "medium"
        if status == "UnderReview":
            title = "Dispute Under Review"
            message = "Your dispute is now being reviewed by our support team."
        elif status == "Resolved":
            title = "Dispute Resolved"
            message = resolution or "Your dispute has been resolved."
            priority = "high"
        elif status == "Rejected":
            title = "Dispute Rejected"
            message = resolution or "Your dispute claim has been rejected."
            priority = "high"
        else:
            title = "Dispute Update"
            message = f"The status of your dispute has been updated to: {status}"

        await self.notifier.send(
            user_id,
            "dispute_update",
            title,
            message,
            priority=priority,
            metadata={"disputeId": dispute_id, "action": "update", "status": status},
        )
