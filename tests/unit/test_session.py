"""Unit tests for the Session lifecycle, exports and library operations."""

import asyncio
import re

import pytest

from vellum.contexts.caching.exceptions import ArtifactUnavailable
from vellum.contexts.caching.storage import MemoryArtifactStorage
from vellum.contexts.rendering.exceptions import ToolchainUnavailable
from vellum.contexts.session.session import Session, safe_filename
from vellum.contexts.templating.resume_content import ResumeDraft
from vellum.utils.config import load_render_config
from vellum.utils.errors import VellumError
from vellum.utils.event_logging import get_recent_events


@pytest.fixture
def config(tmp_path):
    return load_render_config(events_file=tmp_path / "events.log", print_command=str(tmp_path / "no-such-lp"))


@pytest.fixture
def storage():
    return MemoryArtifactStorage()


@pytest.fixture
def draft(ada_content):
    return ResumeDraft(ada_content)


def make_session(draft, config, storage, fake_pipeline, session_id="sess-1"):
    return Session(session_id=session_id, draft=draft, config=config, storage=storage, pipeline=fake_pipeline)


@pytest.mark.unit
@pytest.mark.parametrize(
    "name,expected",
    [
        ("Ada Lovelace", "Ada_Lovelace.pdf"),
        ("draft.pdf", "draft.pdf"),
        ("../../etc/passwd", "etc_passwd.pdf"),
        ("", "resume.pdf"),
    ],
)
def test_safe_filename(name, expected):
    assert safe_filename(name) == expected


@pytest.mark.unit
def test_context_manager_lifecycle(draft, config, storage, fake_pipeline, tmp_path):
    with make_session(draft, config, storage, fake_pipeline) as session:
        result = asyncio.run(session.render())
        handle = result.handle
        assert session.artifact_reference == handle.uri

    assert session.store.live_handle_count == 0
    assert session.artifact_reference is None
    assert session.status == "idle"

    event_types = [event["event_type"] for event in get_recent_events(tmp_path / "events.log", n=100)]
    assert event_types[0] == "session_init"
    assert event_types[-1] == "session_teardown"


@pytest.mark.unit
def test_async_context_manager(draft, config, storage, fake_pipeline):
    async def scenario():
        async with make_session(draft, config, storage, fake_pipeline) as session:
            result = await session.render(template_id="modern")
            return session, result

    session, result = asyncio.run(scenario())

    assert result.ok
    assert result.artifact.template_id == "modern"
    assert session.store.live_handle_count == 0


@pytest.mark.unit
def test_async_exit_waits_for_a_render_in_flight(draft, config, storage, fake_pipeline):
    fake_pipeline.delays = [0.05]

    async def scenario():
        async with make_session(draft, config, storage, fake_pipeline) as session:
            render = asyncio.ensure_future(session.render())
            await asyncio.sleep(0.01)
        return session, await render

    session, result = asyncio.run(scenario())

    assert result.failure.code == "session_closed"
    assert session.store.live_handle_count == 0
    assert session.status == "idle"


@pytest.mark.unit
def test_content_changes_mark_session_stale(draft, config, storage, fake_pipeline):
    with make_session(draft, config, storage, fake_pipeline) as session:
        assert session.stale
        asyncio.run(session.render())
        assert not session.stale

        draft.update(professionalSummary="A freshly edited summary for the session.")
        assert session.stale
        # Edits never render by themselves
        assert len(fake_pipeline.calls) == 1


@pytest.mark.unit
def test_teardown_stops_listening(draft, config, storage, fake_pipeline):
    session = make_session(draft, config, storage, fake_pipeline)
    session.init()
    session.stale = False
    session.teardown()

    draft.update(summary="Edited after teardown, nobody should notice this.")
    assert not session.stale


@pytest.mark.unit
def test_require_ready(draft, config, storage, fake_pipeline):
    draft.update(professionalSummary="Too short")
    with make_session(draft, config, storage, fake_pipeline) as session:
        blocked = asyncio.run(session.render(require_ready=True))
        assert blocked.failure.code == "content_not_ready"
        assert "professional summary" in blocked.failure.message
        assert fake_pipeline.calls == []
        assert session.failure == blocked.failure


@pytest.mark.unit
def test_persisted_artifact_restored_by_next_session(draft, config, storage, fake_pipeline):
    with make_session(draft, config, storage, fake_pipeline) as session:
        first = asyncio.run(session.render())
        session.save_to_library("Draft 1")
        assert session.persist()

    with make_session(draft, config, storage, fake_pipeline) as session:
        assert session.store.current_fingerprint == first.fingerprint
        assert [entry.name for entry in session.library()] == ["Draft 1"]

        again = asyncio.run(session.render())
        assert again.cache_hit
        assert len(fake_pipeline.calls) == 1


@pytest.mark.unit
def test_download_default_name(draft, config, storage, fake_pipeline, tmp_path):
    with make_session(draft, config, storage, fake_pipeline) as session:
        result = asyncio.run(session.render())
        path = session.download(output_dir=tmp_path / "out")

    assert re.fullmatch(r"Ada_Lovelace_\d{4}-\d{2}-\d{2}\.pdf", path.name)
    assert path.read_bytes() == result.artifact.binary_data


@pytest.mark.unit
def test_download_library_entry_by_name(draft, config, storage, fake_pipeline, tmp_path):
    with make_session(draft, config, storage, fake_pipeline) as session:
        first = asyncio.run(session.render())
        entry_id = session.save_to_library("Draft 1")

        draft.update(professionalSummary="A different summary that forces a second compile.")
        asyncio.run(session.render())

        path = session.download(name="first draft", entry_id=entry_id, output_dir=tmp_path)

    assert path.name == "first_draft.pdf"
    assert path.read_bytes() == first.artifact.binary_data


@pytest.mark.unit
def test_download_without_artifact(draft, config, storage, fake_pipeline, tmp_path):
    with make_session(draft, config, storage, fake_pipeline) as session:
        with pytest.raises(ArtifactUnavailable):
            session.download(output_dir=tmp_path)
        with pytest.raises(ArtifactUnavailable):
            session.download(entry_id="missing", output_dir=tmp_path)


@pytest.mark.unit
def test_delete_from_library(draft, config, storage, fake_pipeline):
    with make_session(draft, config, storage, fake_pipeline) as session:
        result = asyncio.run(session.render())
        entry_id = session.save_to_library("Draft 1")

        assert session.delete_from_library(entry_id)
        assert session.library() == []
        assert session.artifact_reference == result.handle.uri


@pytest.mark.unit
def test_print_with_missing_command(draft, config, storage, fake_pipeline):
    with make_session(draft, config, storage, fake_pipeline) as session:
        asyncio.run(session.render())
        with pytest.raises(ToolchainUnavailable):
            session.print()


@pytest.mark.unit
def test_print_failure(draft, storage, fake_pipeline, tmp_path):
    config = load_render_config(print_command="false")
    with make_session(draft, config, storage, fake_pipeline) as session:
        asyncio.run(session.render())
        with pytest.raises(VellumError, match="exited with 1"):
            session.print()


@pytest.mark.unit
def test_status_listener(draft, config, storage, fake_pipeline):
    seen = []
    with make_session(draft, config, storage, fake_pipeline) as session:
        session.on_status(seen.append)
        asyncio.run(session.render())
    assert seen == ["hashing", "compiling", "ready", "idle"]
