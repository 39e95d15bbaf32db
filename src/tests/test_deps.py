import pytest
from sqlalchemy import select, func
from library_manager import deps, models

pytestmark = pytest.mark.asyncio

async def test_failed_request_rolls_back_pending_changes(session_factory, monkeypatch):
    monkeypatch.setattr(deps, "SessionLocal", session_factory)
    gen = deps.get_session()
    s = await gen.__anext__()
    s.add(models.Book(title="Dune", author="Frank Herbert"))
    await s.flush()
    with pytest.raises(RuntimeError):
        await gen.athrow(RuntimeError("boom"))
    async with session_factory() as check:
        assert (await check.execute(select(func.count(models.Book.id)))).scalar_one() == 0

async def test_successful_request_yields_one_session(session_factory, monkeypatch):
    monkeypatch.setattr(deps, "SessionLocal", session_factory)
    gen = deps.get_session()
    s = await gen.__anext__()
    assert s.is_active
    with pytest.raises(StopAsyncIteration):
        await gen.__anext__()
