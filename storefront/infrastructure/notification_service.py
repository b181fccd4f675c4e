from twilio.rest import Client
import logging

from storefront.application.handoff import order_details
from storefront.core.config import Settings, settings as default_settings
from storefront.domain import messages
from storefront.domain.entities import Order
from storefront.domain.messages import format_price

logger = logging.getLogger(__name__)


class NotificationService:
    """Pushes a WhatsApp summary of each new order to the admin via Twilio."""

    def __init__(self, config: Settings = default_settings):
        self.config = config
        self.client = None
        self.enabled = False

        # Only initialize if credentials exist in .env
        if config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN and config.TWILIO_FROM_NUMBER:
            try:
                self.client = Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
                self.enabled = True
                logger.info("✅ NotificationService: Twilio Client Initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Twilio Client: {e}")
        else:
            logger.info("⚠️ NotificationService: Credentials missing in .env. Notifications disabled.")

    def notify_admin_new_order(self, order: Order) -> bool:
        """Send the order summary to ADMIN_PHONE_NUMBER. Failures are logged, never raised."""
        if not self.enabled or not self.config.ADMIN_PHONE_NUMBER:
            logger.debug("NotificationService disabled or admin number missing.")
            return False

        message_body = messages.ADMIN_NOTIFICATION.format(
            order_number=order.order_number,
            name=order.customer_name,
            phone=order.customer_phone,
            order_details=order_details(order),
            total=format_price(order.total_amount),
        )

        try:
            self.client.messages.create(
                from_=_whatsapp_address(self.config.TWILIO_FROM_NUMBER),
                body=message_body,
                to=_whatsapp_address(self.config.ADMIN_PHONE_NUMBER),
            )
            logger.info(f"✅ Admin Notification Sent for {order.order_number}")
            return True
        except Exception as e:
            logger.error(f"❌ Failed to send Admin Notification: {e}")
            return False


def _whatsapp_address(number: str) -> str:
    # Twilio requires the "whatsapp:" prefix
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"
