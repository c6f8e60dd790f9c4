"""
邮件服务
通过SMTP异步发送邮件（默认Gmail, STARTTLS）
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from ..logging import get_logger


logger = get_logger(__name__)


class EmailService:
    """异步邮件服务"""

    def __init__(
        self,
        smtp_user: str,
        smtp_password: str,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        from_name: str = "LMS"
    ):
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.from_name = from_name

    @classmethod
    def from_settings(cls, email_settings) -> "EmailService":
        """从EmailSettings创建邮件服务"""
        return cls(
            smtp_user=email_settings.user,
            smtp_password=email_settings.password,
            smtp_host=email_settings.smtp_host,
            smtp_port=email_settings.smtp_port,
            from_name=email_settings.from_name
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        发送邮件

        Returns:
            是否发送成功
        """
        if not self.is_configured:
            logger.warning("邮件服务未配置，跳过发送", extra={'event': 'email_not_configured'})
            return False

        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.smtp_user}>"
        message["To"] = to_email
        message["Subject"] = subject

        # 纯文本版本放在前面，客户端优先展示HTML
        if text_content:
            message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )
        except aiosmtplib.SMTPException as e:
            logger.error("邮件发送失败", extra={
                'event': 'email_send_failed',
                'subject': subject,
                'error': str(e)
            })
            return False

        logger.info("邮件发送成功", extra={'event': 'email_sent', 'subject': subject})
        return True

    async def send_password_reset_email(self, to_email: str, reset_url: str) -> bool:
        """发送密码重置链接"""
        subject = "Password Reset Request"
        text_content = f"You requested a password reset. Click the link to reset your password: {reset_url}"
        html_content = (
            "<p>You requested a password reset. Click the link to reset your password:</p>"
            f'<p><a href="{reset_url}">{reset_url}</a></p>'
        )
        return await self.send_email(to_email, subject, html_content, text_content)
