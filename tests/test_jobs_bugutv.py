from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from job_scheduler.errors import JobError
from job_scheduler.jobs import load_jobs
from job_scheduler.jobs.bugutv import BugutvCheckinJob

LOGIN_OK = r'{"status":1,"msg":"登录成功"}'
LOGIN_REJECTED = r'{"status":0,"msg":"密码错误"}'
CHECKIN_OK = r'{"status":1,"msg":"签到成功"}'
ALREADY_CHECKED_IN = r'{"status":0,"msg":"今日已签到"}'


def user_page(points: int, with_points: bool = True) -> str:
    badge = (
        '<span class="badge badge-warning-lighten"><i class="fas fa-coins"></i> '
        f"{points}</span>"
        if with_points
        else ""
    )
    return (
        f"<html><body>{badge}"
        '<a class="go-user-qiandao" data-nonce="abc123">签到</a>'
        '<a href="https://www.bugutv.vip/wp-login.php?action=logout'
        '&redirect_to=https%3A%2F%2Fwww.bugutv.vip&_wpnonce=wp987">退出</a>'
        "</body></html>"
    )


class FakeSite:
    """In-memory stand-in for bugutv.vip."""

    def __init__(
        self,
        login_response: str = LOGIN_OK,
        checkin_response: str = CHECKIN_OK,
        points: int = 10,
        with_points: bool = True,
        logout_error: bool = False,
    ):
        self.login_response = login_response
        self.checkin_response = checkin_response
        self.points = points
        self.with_points = with_points
        self.logout_error = logout_error
        self.requests = []

    def actions(self, name):
        return [r for r in self.requests if r[0] == name]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/wp-admin/admin-ajax.php":
            form = parse_qs(request.content.decode())
            action = form["action"][0]
            self.requests.append((action, form))
            if action == "user_login":
                return httpx.Response(200, text=self.login_response)
            if action == "user_qiandao":
                if self.checkin_response == CHECKIN_OK:
                    self.points += 1
                return httpx.Response(200, text=self.checkin_response)
            return httpx.Response(400, text="0")

        if path == "/user":
            self.requests.append(("user_page", None))
            return httpx.Response(200, text=user_page(self.points, self.with_points))

        if path == "/wp-login.php":
            self.requests.append(("logout", dict(request.url.params)))
            if self.logout_error:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, text="bye")

        self.requests.append(("home", None))
        return httpx.Response(200, text="<html></html>", headers={"set-cookie": "sid=1; Path=/"})


def make_job(site: FakeSite, **kwargs) -> BugutvCheckinJob:
    kwargs.setdefault("retry_delay", 0)
    return BugutvCheckinJob(
        username="alice",
        password="secret",
        request_delay=0,
        transport=httpx.MockTransport(site.handler),
        **kwargs,
    )


class TestCheckinFlow:
    @pytest.mark.asyncio
    async def test_run_success(self):
        site = FakeSite(points=10)
        job = make_job(site)

        result = await job.run()

        assert result == "Earned 1 points, total 11"
        login = site.actions("user_login")[0][1]
        assert login["username"] == ["alice"]
        assert login["password"] == ["secret"]
        assert site.actions("user_qiandao")[0][1]["nonce"] == ["abc123"]
        assert site.actions("logout")[0][1]["_wpnonce"] == "wp987"

    @pytest.mark.asyncio
    async def test_already_checked_in(self):
        site = FakeSite(checkin_response=ALREADY_CHECKED_IN, points=42)

        result = await make_job(site).run()

        assert result == "Earned 0 points, total 42"

    @pytest.mark.asyncio
    async def test_login_rejected_retries_then_fails(self):
        site = FakeSite(login_response=LOGIN_REJECTED)
        job = make_job(site)

        with pytest.raises(JobError, match="after 3 attempts"):
            await job.run()

        assert len(site.actions("user_login")) == 3
        assert site.actions("user_qiandao") == []

    @pytest.mark.asyncio
    async def test_missing_points_fails_attempt(self):
        site = FakeSite(with_points=False)

        with pytest.raises(JobError, match="Points balance not found"):
            await make_job(site).run_checkin()

    @pytest.mark.asyncio
    async def test_logout_failure_is_ignored(self, log_messages):
        site = FakeSite(logout_error=True)

        result = await make_job(site).run()

        assert result == "Earned 1 points, total 11"
        assert len(site.actions("logout")) == 1
        assert any("Logout failed" in m for m in log_messages)


class TestRetry:
    @pytest.mark.asyncio
    async def test_three_attempts_with_fixed_delay(self):
        job = BugutvCheckinJob("alice", "secret", retry_delay=10)

        with patch.object(
            job, "run_checkin", AsyncMock(side_effect=JobError("Login failed"))
        ) as mock_attempt, patch(
            "job_scheduler.jobs.bugutv.asyncio.sleep", AsyncMock()
        ) as mock_sleep:
            with pytest.raises(JobError):
                await job.run()

        assert mock_attempt.await_count == 3
        assert [c.args for c in mock_sleep.await_args_list] == [(10,), (10,)]

    @pytest.mark.asyncio
    async def test_succeeds_on_second_attempt(self):
        job = BugutvCheckinJob("alice", "secret", retry_delay=0)

        with patch.object(
            job,
            "run_checkin",
            AsyncMock(side_effect=[httpx.ConnectError("timeout"), "Earned 1 points"]),
        ) as mock_attempt:
            result = await job.run()

        assert result == "Earned 1 points"
        assert mock_attempt.await_count == 2


class TestFromEnv:
    @patch("job_scheduler.jobs.bugutv.get_settings")
    def test_missing_credentials(self, mock_settings):
        mock_settings.return_value = MagicMock(bugutv_username="", bugutv_password="x")
        assert BugutvCheckinJob.from_env() is None

    @patch("job_scheduler.jobs.bugutv.get_settings")
    def test_from_settings(self, mock_settings):
        mock_settings.return_value = MagicMock(
            bugutv_username="alice",
            bugutv_password="secret",
            bugutv_cron="0 30 9 * * *",
            bugutv_max_attempts=5,
            bugutv_retry_delay=2.0,
        )

        job = BugutvCheckinJob.from_env()

        assert job.name == "bugutv_checkin"
        assert job.cron_expr == "0 30 9 * * *"
        assert job.max_attempts == 5
        assert job.retry_delay == 2.0

    @patch("job_scheduler.jobs.bugutv.get_settings")
    def test_load_jobs_skips_unconfigured(self, mock_settings, log_messages):
        mock_settings.return_value = MagicMock(bugutv_username="", bugutv_password="")

        assert load_jobs() == []
        assert any("Missing configuration for bugutv_checkin" in m for m in log_messages)
