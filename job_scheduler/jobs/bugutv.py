from __future__ import annotations

import asyncio
import re
from typing import Optional

import httpx
from loguru import logger

from job_scheduler.config import get_settings
from job_scheduler.errors import JobError
from job_scheduler.jobs.base import Job

BASE_URL = "https://www.bugutv.vip"
AJAX_URL = f"{BASE_URL}/wp-admin/admin-ajax.php"
USER_URL = f"{BASE_URL}/user"
LOGOUT_URL = (
    f"{BASE_URL}/wp-login.php?action=logout"
    "&redirect_to=https%3A%2F%2Fwww.bugutv.vip&_wpnonce={wpnonce}"
)
REQUEST_TIMEOUT = 30  # seconds

# 頁面回傳可能是原文或 \uXXXX 跳脫後的 JSON
LOGIN_SUCCESS_MARKERS = ("登录成功", "\\u767b\\u5f55\\u6210\\u529f")
ALREADY_CHECKED_IN_MARKERS = ("今日已签到", "\\u4eca\\u65e5\\u5df2\\u7b7e\\u5230")
CHECKIN_SUCCESS_MARKERS = ("签到成功", "\\u7b7e\\u5230\\u6210\\u529f")

_POINTS_PATTERN = re.compile(
    r'<span class="badge badge-warning-lighten"><i class="fas fa-coins"></i> (.*?)</span>'
)
_NONCE_PATTERN = re.compile(r'data-nonce="(.*?)"')
_LOGOUT_NONCE_PATTERN = re.compile(
    r'action=logout&redirect_to=https%3A%2F%2Fwww.bugutv.vip&_wpnonce=(.*?)"'
)


class BugutvCheckinJob(Job):
    """布谷TV 每日簽到"""

    name = "bugutv_checkin"

    def __init__(
        self,
        username: str,
        password: str,
        cron_expr: str = "0 0 8 * * *",
        max_attempts: int = 3,
        retry_delay: float = 10.0,
        request_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username
        self.password = password
        self._cron_expr = cron_expr
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.request_delay = request_delay
        self.transport = transport

    @property
    def cron_expr(self) -> str:
        return self._cron_expr

    @classmethod
    def from_env(cls) -> Optional["BugutvCheckinJob"]:
        settings = get_settings()
        if not (settings.bugutv_username and settings.bugutv_password):
            return None

        logger.info("Loaded BugutvCheckinJob from environment")
        return cls(
            username=settings.bugutv_username,
            password=settings.bugutv_password,
            cron_expr=settings.bugutv_cron,
            max_attempts=settings.bugutv_max_attempts,
            retry_delay=settings.bugutv_retry_delay,
        )

    async def run(self) -> Optional[str]:
        logger.info(f"[{self.name}] Starting check-in")

        for attempt in range(self.max_attempts):
            if attempt > 0:
                logger.info(f"[{self.name}] Attempt {attempt + 1}/{self.max_attempts}")
            try:
                return await self.run_checkin()
            except Exception as e:
                logger.error(f"[{self.name}] Check-in failed: {e}")
                if attempt < self.max_attempts - 1:
                    await asyncio.sleep(self.retry_delay)

        raise JobError(f"Check-in failed after {self.max_attempts} attempts")

    async def run_checkin(self) -> str:
        """單次簽到流程：登入、查積分、簽到、再查積分、登出"""
        # 每次嘗試使用新的 cookie jar
        async with self._make_client() as client:
            if not await self.login(client):
                raise JobError("Login failed")

            points_before = await self.get_points(client)
            await self.check_in(client)
            points_after = await self.get_points(client)

            earned = points_after - points_before
            logger.info(f"[{self.name}] {self.username} earned {earned} points")
            logger.info(f"[{self.name}] Total points: {points_after}")

            await self.logout(client)

        return f"Earned {earned} points, total {points_after}"

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=REQUEST_TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": "Mozilla/5.0"},
            transport=self.transport,
        )

    async def _pause(self) -> None:
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

    async def login(self, client: httpx.AsyncClient) -> bool:
        logger.info(f"[{self.name}] Logging in")

        # 先請求首頁取得 cookie
        await client.get(BASE_URL)
        await self._pause()

        resp = await client.post(
            AJAX_URL,
            data={
                "action": "user_login",
                "username": self.username,
                "password": self.password,
                "rememberme": "1",
            },
        )
        body = resp.text

        if any(marker in body for marker in LOGIN_SUCCESS_MARKERS):
            logger.info(f"[{self.name}] Login succeeded")
            return True

        logger.warning(f"[{self.name}] Login rejected: {body[:200]}")
        return False

    async def get_points(self, client: httpx.AsyncClient) -> int:
        resp = await client.get(USER_URL)
        body = resp.text
        await self._pause()

        match = _POINTS_PATTERN.search(body)
        if match is None:
            raise JobError("Points balance not found on user page")
        try:
            return int(match.group(1).strip())
        except ValueError as e:
            raise JobError(f"Unreadable points balance: {match.group(1)!r}") from e

    async def check_in(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(USER_URL)
        body = resp.text
        await self._pause()

        match = _NONCE_PATTERN.search(body)
        if match is None:
            raise JobError("data-nonce not found on user page")
        nonce = match.group(1)
        logger.info(f"[{self.name}] Checking in, data-nonce: {nonce}")

        resp = await client.post(
            AJAX_URL, data={"action": "user_qiandao", "nonce": nonce}
        )
        content = resp.text
        await self._pause()

        if any(marker in content for marker in ALREADY_CHECKED_IN_MARKERS):
            logger.info(f"[{self.name}] Already checked in today")
        elif any(marker in content for marker in CHECKIN_SUCCESS_MARKERS):
            logger.info(f"[{self.name}] Check-in succeeded, reward credited")
        else:
            logger.warning(f"[{self.name}] Unexpected check-in response: {content[:200]}")

    async def logout(self, client: httpx.AsyncClient) -> None:
        """Best-effort logout; failures are logged and ignored."""
        resp = await client.get(USER_URL)
        match = _LOGOUT_NONCE_PATTERN.search(resp.text)
        if match is None:
            raise JobError("wpnonce not found, cannot log out")

        try:
            await client.get(LOGOUT_URL.format(wpnonce=match.group(1)))
        except httpx.HTTPError as e:
            logger.error(f"[{self.name}] Logout failed: {e}")
            return
        logger.info(f"[{self.name}] Logged out")
