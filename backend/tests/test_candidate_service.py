import pytest

from conftest import SAMPLE_BLUEPRINT, SAMPLE_CV, FailingStore, StubLLM
from services.candidate_service import CandidateService
from services.errors import (
    EvaluationFailedError,
    MissingPrerequisiteError,
    ProviderOverloadedError,
    TransientProviderError,
)
from services.retrieval import RetrievalOrchestrator

PROFILE = {
    "name": "Jane Smith",
    "email": "jane.smith@email.com",
    "phone": "+1-555-0199",
    "skills": [{"skill": "Python", "level": "expert", "chunk_index": 5}],
}


@pytest.fixture
def make_service(repository, retrieval, evaluation_config, sleeps):
    def _make(llm=None, retrieval_override=None):
        return CandidateService(
            repository=repository,
            retrieval=retrieval_override or retrieval,
            llm=llm or StubLLM(profiles=[PROFILE]),
            config=evaluation_config,
            sleep=sleeps,
        )
    return _make


@pytest.mark.asyncio
async def test_create_candidate_chunks_and_indexes(repository, retrieval, store, make_service):
    service = make_service()
    job = await service.create_job("Backend", blueprint=SAMPLE_BLUEPRINT, owner_id="owner-1")

    candidate = await service.create_candidate(job.id, SAMPLE_CV, "jane.pdf", owner_id="owner-1")

    assert candidate.status == "pending"
    assert candidate.owner_id == "owner-1"
    chunks = await service.get_chunks(candidate.id)
    assert len(chunks) == 6
    assert store.has_chunks(candidate.id)

    trail = await service.get_audit_trail(candidate.id)
    assert trail[0].action == "cv_uploaded"
    assert trail[0].metadata == {"filename": "jane.pdf", "characters": len(SAMPLE_CV), "chunks": 6}


@pytest.mark.asyncio
async def test_create_candidate_unknown_job(make_service):
    assert await make_service().create_candidate("missing", SAMPLE_CV) is None


@pytest.mark.asyncio
async def test_create_candidate_other_owners_job(make_service):
    service = make_service()
    job = await service.create_job("Backend", owner_id="owner-1")
    assert await service.create_candidate(job.id, SAMPLE_CV, owner_id="owner-2") is None


@pytest.mark.asyncio
async def test_indexing_outage_does_not_block_upload(make_service):
    service = make_service(retrieval_override=RetrievalOrchestrator(FailingStore("connection refused")))
    job = await service.create_job("Backend")

    candidate = await service.create_candidate(job.id, SAMPLE_CV)

    assert candidate is not None
    assert len(await service.get_chunks(candidate.id)) == 6


@pytest.mark.asyncio
async def test_parse_profile_updates_candidate(repository, make_service):
    llm = StubLLM(profiles=[PROFILE])
    service = make_service(llm)
    job = await service.create_job("Backend")
    candidate = await service.create_candidate(job.id, SAMPLE_CV)

    profile = await service.parse_profile(candidate.id)

    assert profile == PROFILE
    stored = await repository.get_candidate(candidate.id)
    assert stored.profile == PROFILE
    assert stored.name == "Jane Smith"
    assert stored.email == "jane.smith@email.com"
    assert stored.phone == "+1-555-0199"

    cv_text, chunks = llm.profile_calls[0]
    assert cv_text == SAMPLE_CV
    assert 0 < len(chunks) <= 10

    actions = [e.action for e in await service.get_audit_trail(candidate.id)]
    assert actions == ["cv_uploaded", "cv_parsed"]


@pytest.mark.asyncio
async def test_parse_profile_retries_then_fails(make_service, sleeps):
    llm = StubLLM(profiles=[TransientProviderError("overloaded", status_code=503)])
    service = make_service(llm)
    job = await service.create_job("Backend")
    candidate = await service.create_candidate(job.id, SAMPLE_CV)

    with pytest.raises(ProviderOverloadedError):
        await service.parse_profile(candidate.id)

    assert len(llm.profile_calls) == 4
    assert sleeps.delays == [2.0, 4.0, 8.0]
    trail = await service.get_audit_trail(candidate.id)
    assert trail[-1].action == "cv_parse_failed"


@pytest.mark.asyncio
async def test_parse_profile_fatal_message(make_service):
    service = make_service(StubLLM(profiles=[ValueError("bad schema")]))
    job = await service.create_job("Backend")
    candidate = await service.create_candidate(job.id, SAMPLE_CV)

    with pytest.raises(EvaluationFailedError, match="^Failed to parse CV: bad schema"):
        await service.parse_profile(candidate.id)


@pytest.mark.asyncio
async def test_parse_profile_unknown_candidate(make_service):
    assert await make_service().parse_profile("nope") is None


@pytest.mark.asyncio
async def test_delete_candidate(repository, store, make_service):
    service = make_service()
    job = await service.create_job("Backend", owner_id="owner-1")
    candidate = await service.create_candidate(job.id, SAMPLE_CV, owner_id="owner-1")

    assert not await service.delete_candidate(candidate.id, owner_id="owner-2")
    assert await service.delete_candidate(candidate.id, owner_id="owner-1")

    assert await repository.get_candidate(candidate.id) is None
    assert await service.get_chunks(candidate.id) is None
    assert not store.has_chunks(candidate.id)
    assert not await service.delete_candidate(candidate.id)


JOB_DESCRIPTION = """Senior Backend Engineer, Payments.
You will own our payouts services and mentor two engineers.
Required: 5+ years of Python, PostgreSQL, distributed systems. Nice to have: Go, Kubernetes."""


@pytest.mark.asyncio
async def test_parse_blueprint_stores_generated_blueprint(repository, make_service):
    llm = StubLLM(blueprints=[SAMPLE_BLUEPRINT])
    service = make_service(llm)
    job = await service.create_job("Backend", description=JOB_DESCRIPTION, owner_id="owner-1")
    assert job.blueprint is None

    updated = await service.parse_blueprint(job.id, owner_id="owner-1")

    assert updated.blueprint == SAMPLE_BLUEPRINT
    assert updated.prompt_version == "v1.0"
    assert (await repository.get_job(job.id)).blueprint == SAMPLE_BLUEPRINT
    assert llm.blueprint_calls == [JOB_DESCRIPTION]


@pytest.mark.asyncio
async def test_parse_blueprint_requires_description(make_service):
    llm = StubLLM(blueprints=[SAMPLE_BLUEPRINT])
    service = make_service(llm)
    job = await service.create_job("Backend", description="   ")

    with pytest.raises(MissingPrerequisiteError):
        await service.parse_blueprint(job.id)
    assert llm.blueprint_calls == []


@pytest.mark.asyncio
async def test_parse_blueprint_unknown_or_foreign_job(make_service):
    service = make_service(StubLLM(blueprints=[SAMPLE_BLUEPRINT]))
    job = await service.create_job("Backend", description=JOB_DESCRIPTION, owner_id="owner-1")

    assert await service.parse_blueprint("missing") is None
    assert await service.parse_blueprint(job.id, owner_id="owner-2") is None


@pytest.mark.asyncio
async def test_parse_blueprint_retries_transient_errors(repository, make_service, sleeps):
    llm = StubLLM(blueprints=[TransientProviderError("429 RESOURCE_EXHAUSTED", status_code=429), SAMPLE_BLUEPRINT])
    service = make_service(llm)
    job = await service.create_job("Backend", description=JOB_DESCRIPTION)

    updated = await service.parse_blueprint(job.id)

    assert updated.blueprint == SAMPLE_BLUEPRINT
    assert len(llm.blueprint_calls) == 2
    assert sleeps.delays == [2.0]


@pytest.mark.asyncio
async def test_parse_blueprint_failure_keeps_job_unchanged(repository, make_service):
    service = make_service(StubLLM(blueprints=[ValueError("bad schema")]))
    job = await service.create_job("Backend", description=JOB_DESCRIPTION)

    with pytest.raises(EvaluationFailedError, match="^Failed to parse job description: bad schema"):
        await service.parse_blueprint(job.id)
    assert (await repository.get_job(job.id)).blueprint is None
