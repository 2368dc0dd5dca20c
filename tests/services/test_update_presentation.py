from datetime import timedelta

import pytest

from skinmod_manager.registry.types import CheckFailed, UpdateAvailable
from skinmod_manager.services.update_checker import UpdateChecker
from skinmod_manager.services.update_service import (
    check_all_result,
    list_update_status,
    update_state_out,
)


@pytest.fixture
def checker(registry, fake_source, clock):
    return UpdateChecker(registry, {fake_source.kind: fake_source}, clock=clock)


class TestUpdateStateOut:
    def test_update_available(self, registry, make_mod, checker, clock):
        c = make_mod("C", ["c.bin"], version="1.2.0", origin=("github_release", "o/c"))
        state = UpdateAvailable(remote_version="1.3.0", checked_at=clock(), download_hint="https://x")
        out = update_state_out(registry.get_mod(c), state, checker)
        assert out.status == "update_available"
        assert out.installed_version == "1.2.0"
        assert out.remote_version == "1.3.0"
        assert out.download_hint == "https://x"
        assert out.next_check_at == clock() + timedelta(hours=6)
        assert out.checking is False

    def test_check_failed(self, registry, make_mod, clock):
        c = make_mod("C", ["c.bin"], origin=("github_release", "o/c"))
        state = CheckFailed(
            reason="HTTP 503",
            checked_at=clock(),
            retry_after=clock() + timedelta(minutes=2),
            failure_count=2,
            error_kind="network",
        )
        out = update_state_out(registry.get_mod(c), state)
        assert out.reason == "HTTP 503"
        assert out.failure_count == 2
        assert out.retry_after == clock() + timedelta(minutes=2)
        assert out.next_check_at is None


class TestListAndReport:
    def test_list_filters_local_mods(self, make_mod, checker):
        c = make_mod("C", ["c.bin"], origin=("github_release", "o/c"))
        make_mod("Local", ["l.bin"])
        assert len(list_update_status(checker)) == 2
        assert [u.mod_id for u in list_update_status(checker, with_origin_only=True)] == [c]

    @pytest.mark.asyncio
    async def test_check_all_result_skips_removed_mods(self, registry, make_mod, checker, fake_source):
        a = make_mod("A", ["a.bin"], origin=("github_release", "o/a"))
        b = make_mod("B", ["b.bin"], origin=("github_release", "o/b"))
        fake_source.responses.update({"o/a": "2.0.0", "o/b": "1.0.0"})
        report = await checker.check_all()
        registry.remove_mod(b)
        result = check_all_result(checker, report)
        assert result.result == "success"
        assert result.checked == 2
        assert [u.mod_id for u in result.updates] == [a]
