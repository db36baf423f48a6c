import logging
from typing import List

from oms.config import settings

logger = logging.getLogger(__name__)

class NotificationTool:
    """
    Decides who hears about a lifecycle event. Delivery (push, e-mail, SMS)
    belongs to the notification service; here it is only logged.
    """
    async def send_notification(self, users: List[str], subject: str, message: str, channels: List[str] = ["email"]):
        """
        Routes notifications to users via specified channels.
        """
        for user in users:
            for channel in channels:
                if channel == "push":
                    await self._send_push(user, subject, message)
                elif channel == "email":
                    await self._send_email(user, subject, message)

    async def notify_vendor(self, vendor_id: str, subject: str, message: str):
        await self.send_notification([f"vendor:{vendor_id}"], subject, message, channels=["push", "email"])

    async def notify_operations(self, subject: str, message: str):
        await self.send_notification([f"group:{settings.OPERATIONS_NOTIFY_GROUP}"], subject, message)

    async def _send_push(self, user: str, subject: str, message: str):
        logger.info(f"[PUSH] To {user} | {subject}: {message[:80]}")

    async def _send_email(self, user: str, subject: str, body: str):
        logger.info(f"[EMAIL] To {user} | Subject: {subject}")

notification_tool = NotificationTool()
