"""
告警通知器

通过日志、邮件、Webhook 发送告警通知。
通知以 fire-and-forget 方式派发，不阻塞规则评估，也不持有告警状态锁。
"""
import asyncio
import smtplib
import ssl
import threading
from concurrent.futures import ThreadPoolExecutor
from email.message import EmailMessage
from email.utils import formatdate
from typing import Optional, List, Dict, Any, Set

import httpx
import structlog

from .models import Alert
from .rules import AlertSeverity

logger = structlog.get_logger(__name__)


class AlertNotifier:
    """
    告警通知器

    功能:
    - 多渠道通知（日志、邮件、Webhook）
    - 异步派发：事件循环中创建任务，否则交给后台线程
    - 渠道失败隔离，只记录日志
    """

    def __init__(
        self,
        email_to: Optional[str] = None,
        webhook_url: Optional[str] = None,
        smtp_host: str = "localhost",
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = True,
        from_address: str = "alerts@quickstock.local",
        webhook_timeout: float = 10.0,
    ):
        self.email_to = email_to
        self.webhook_url = webhook_url
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_address = from_address
        self.webhook_timeout = webhook_timeout

        self._pending: Set[asyncio.Task] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._stats_lock = threading.Lock()
        self._sent = 0
        self._failed = 0

    @classmethod
    def from_settings(cls, settings) -> "AlertNotifier":
        """从 NotificationSettings 构建"""
        return cls(
            email_to=settings.email,
            webhook_url=settings.webhook,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            smtp_use_tls=settings.smtp_use_tls,
            from_address=settings.from_address,
            webhook_timeout=settings.webhook_timeout,
        )

    @property
    def channels(self) -> List[str]:
        channels = ["log"]
        if self.email_to:
            channels.append("email")
        if self.webhook_url:
            channels.append("webhook")
        return channels

    # ===== 派发 =====

    def dispatch(self, alert: Alert) -> None:
        """
        异步派发通知，立即返回

        有运行中的事件循环时创建任务，否则提交到后台线程执行。
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self.notify(alert))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="alert-notify")
        self._executor.submit(asyncio.run, self.notify(alert))

    async def notify(self, alert: Alert) -> List[str]:
        """
        通过所有已配置渠道发送通知

        Returns:
            成功送达的渠道列表
        """
        delivered = []

        for channel in self.channels:
            try:
                if channel == "log":
                    await self._notify_log(alert)
                elif channel == "email":
                    await self._notify_email(alert)
                elif channel == "webhook":
                    await self._notify_webhook(alert)

                delivered.append(channel)
            except Exception as e:
                self._count(success=False)
                logger.error(
                    "alert_notification_failed",
                    alert_id=alert.id,
                    severity=alert.severity.value,
                    title=alert.title,
                    channel=channel,
                    error=str(e),
                )
            else:
                self._count(success=True)

        logger.info(
            "alert_notification_sent",
            alert_id=alert.id,
            severity=alert.severity.value,
            title=alert.title,
            channels=delivered,
        )
        return delivered

    async def drain(self) -> None:
        """等待事件循环中尚未完成的通知任务"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def shutdown(self, wait: bool = True) -> None:
        """关闭后台线程池"""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # ===== 渠道 =====

    async def _notify_log(self, alert: Alert) -> None:
        """通过日志通知"""
        if alert.severity == AlertSeverity.CRITICAL:
            log_method = logger.critical
        elif alert.severity == AlertSeverity.HIGH:
            log_method = logger.error
        elif alert.severity == AlertSeverity.MEDIUM:
            log_method = logger.warning
        else:
            log_method = logger.info

        log_method(
            "alert_notification",
            alert_id=alert.id,
            severity=alert.severity.value,
            component=alert.component,
            title=alert.title,
            description=alert.description,
        )

    async def _notify_email(self, alert: Alert) -> None:
        """通过邮件通知（SMTP 在线程中执行）"""
        message = self._build_email(alert)
        await asyncio.to_thread(self._send_email, message)

    def _build_email(self, alert: Alert) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = self.email_to
        message["Subject"] = f"[{alert.severity.value.upper()}] {alert.title}"
        message["Date"] = formatdate(localtime=True)

        lines = [
            f"Alert: {alert.title}",
            f"ID: {alert.id}",
            f"Severity: {alert.severity.value}",
            f"Component: {alert.component}",
            f"Time: {alert.timestamp.isoformat()}",
            "",
            alert.description,
        ]
        if alert.value is not None:
            lines.append(f"Value: {alert.value} (threshold: {alert.threshold})")
        message.set_content("\n".join(lines))
        return message

    def _send_email(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            if self.smtp_use_tls:
                server.starttls(context=ssl.create_default_context())
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(message)

    async def _notify_webhook(self, alert: Alert) -> None:
        """通过 Webhook 通知"""
        async with httpx.AsyncClient(timeout=self.webhook_timeout) as client:
            response = await client.post(
                self.webhook_url,
                json={
                    "type": "alert",
                    "alert": alert.to_dict(),
                },
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "QuickStock-Alert/1.0",
                },
            )

            if not response.is_success:
                logger.warning(
                    "alert_webhook_failed",
                    alert_id=alert.id,
                    status=response.status_code,
                )
                response.raise_for_status()

    def _count(self, success: bool) -> None:
        with self._stats_lock:
            if success:
                self._sent += 1
            else:
                self._failed += 1

    def get_stats(self) -> Dict[str, Any]:
        """获取通知器统计"""
        with self._stats_lock:
            sent, failed = self._sent, self._failed
        return {
            "channels": self.channels,
            "deliveries_succeeded": sent,
            "deliveries_failed": failed,
            "pending_tasks": len(self._pending),
            "email_configured": self.email_to is not None,
            "webhook_configured": self.webhook_url is not None,
        }
