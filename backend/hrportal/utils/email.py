import smtplib
from email.message import EmailMessage
from hrportal.config import settings


def _send(msg: EmailMessage) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        server.starttls()
        if settings.SMTP_USERNAME:
            server.login(
                settings.SMTP_USERNAME,
                settings.SMTP_PASSWORD
            )
        server.send_message(msg)


def send_employee_credentials(
    to_email: str,
    employee_id: str,
    temp_password: str,
    employee_name: str
):
    msg = EmailMessage()
    msg["Subject"] = "Your Employee Account Credentials"
    msg["From"] = settings.SMTP_FROM_EMAIL
    msg["To"] = to_email

    msg.set_content(f"""
Hello {employee_name},

Your employee account has been created.

Employee ID: {employee_id}
Login email: {to_email}
Temporary Password: {temp_password}

Login here:
{settings.FRONTEND_LOGIN_URL}

Please change your password immediately after first login.

Regards,
HR Team
""")
    _send(msg)


def send_password_reset_link(
    to_email: str,
    reset_token: str,
    employee_name: str
):
    msg = EmailMessage()
    msg["Subject"] = "Reset your password"
    msg["From"] = settings.SMTP_FROM_EMAIL
    msg["To"] = to_email

    msg.set_content(f"""
Hello {employee_name},

We received a password reset request for your account.

Set a new password here (the link expires in {settings.RESET_TOKEN_EXPIRE_MINUTES} minutes):
{settings.FRONTEND_RESET_URL}?token={reset_token}

If you did not request this, you can ignore this email.

Regards,
HR Team
""")
    _send(msg)
