import logging
import resend
from carwash.config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from carwash.models.auth_model import User
from carwash.models.reservation_model import Reservation
from carwash.models.service_model import SERVICE_CATALOG

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def build_reminder_html(user: User, reservation: Reservation, local_start, local_end) -> str:
    services = ", ".join(SERVICE_CATALOG[service].name for service in reservation.services)
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 700px; margin: 0 auto; padding: 20px;">
  <div style="background: #395fd2; padding: 30px; border-radius: 0 0 8px 8px">
    <h1 style="text-align: center; margin: 5px auto 10px; color: #fff">
      Your car wash is coming up
    </h1>
    <h2 style="color: #fff; margin: 0; line-height: 1.2;">Hi {user.name or "there"},</h2>
    <div style="background: white; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <p><strong>Vehicle:</strong> {reservation.vehicle_plate_number}</p>
      <p><strong>Services:</strong> {services}</p>
      <p>
        <strong>Time:</strong>
        <span style="color: #e74c3c; font-weight: bold">
          {local_start.strftime("%Y-%m-%d %H:%M")}-{local_end.strftime("%H:%M")}
        </span>
      </p>
    </div>
    <div style="background: #fff3cd; padding: 15px; border-radius: 8px; border: 1px solid #ffeaa7;">
      <p style="color: #856404; margin: 0">
        Please drop off the key and confirm where you parked the car.
      </p>
      <p style="margin: 10px 0 0">
        <a href="{FRONTEND_URL}/reservations/{reservation.id}"
           style="background: #d8f999; color: black; padding: 8px 12px; text-decoration: none; border-radius: 6px; font-weight: bold;">
          Confirm drop-off
        </a>
      </p>
    </div>
  </div>
</div>
    """


def send_reminder_email(user: User, reservation: Reservation, time_zone=None) -> dict:
    try:
        local_start = reservation.start_date.astimezone(time_zone)
        local_end = reservation.end_date.astimezone(time_zone)
        params = {
            "from": EMAIL_FROM_ADDRESS,
            "to": [user.email],
            "subject": f"Car wash reminder: drop off the key for {reservation.vehicle_plate_number}",
            "html": build_reminder_html(user, reservation, local_start, local_end),
        }
        result = resend.Emails.send(params)
        if result and "id" in result:
            logger.info(
                "Reminder email sent to %s for reservation %s, email id %s",
                user.email, reservation.id, result["id"],
            )
            return {"success": True, "email_id": result["id"]}
        logger.error("Reminder email for reservation %s got an invalid response", reservation.id)
        return {"success": False, "error": "invalid response"}
    except Exception as e:
        logger.exception("Reminder email for reservation %s failed", reservation.id)
        return {"success": False, "error": str(e)}
