"""End-to-end tests of the HTTP surface with in-memory collaborators."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import pytest
from conftest import TASK_SECRET, FakeGenerationClient, RecordingEnqueuer, seed_job

from schemgen.api.deps import get_pipeline_context
from schemgen.jobs.errors import GenerationFailed
from schemgen.main import app
from schemgen.services.tasks.local import LocalHttpEnqueuer

TASK_HEADERS = {"x-schemgen-task-secret": TASK_SECRET}


@pytest.mark.anyio
async def test_health(async_client) -> None:
  response = await async_client.get("/health")
  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert response.headers["x-request-id"]


@pytest.mark.anyio
async def test_generate_then_process_then_poll(async_client, enqueuer) -> None:
  response = await async_client.post("/v1/generate", json={"prompt": "a small stone tower"})
  assert response.status_code == 200
  job_id = response.json()["jobId"]

  polled = await async_client.get(f"/v1/jobs/{job_id}")
  assert polled.json()["status"] == "waiting"

  assert [item.to_payload() for item in enqueuer.items] == [{"prompt": "a small stone tower", "jobId": job_id}]
  processed = await async_client.post("/internal/tasks/process-job", json=enqueuer.items[0].to_payload(), headers=TASK_HEADERS)
  assert processed.status_code == 200
  assert processed.json() == {"jobId": job_id, "status": "finished"}

  body = (await async_client.get(f"/v1/jobs/{job_id}")).json()
  assert body["status"] == "finished"
  assert body["error"] is None
  assert Path(body["artifact"]).read_bytes() == b"schem-bytes"

  redelivered = await async_client.post("/internal/tasks/process-job", json=enqueuer.items[0].to_payload(), headers=TASK_HEADERS)
  assert redelivered.json() == {"jobId": job_id, "status": "skipped"}


@pytest.mark.anyio
@pytest.mark.parametrize("body", [{}, {"prompt": 7}, {"prompt": None}, ["a tower"]])
async def test_invalid_prompt_is_rejected(async_client, jobs_repo, enqueuer, body) -> None:
  response = await async_client.post("/v1/generate", json=body)

  assert response.status_code == 400
  assert response.json()["code"] == "invalid-argument"
  assert jobs_repo._jobs == {}
  assert enqueuer.items == []


@pytest.mark.anyio
async def test_empty_prompt_is_accepted(async_client, jobs_repo) -> None:
  response = await async_client.post("/v1/generate", json={"prompt": ""})

  assert response.status_code == 200
  record = await jobs_repo.get_job(response.json()["jobId"])
  assert record.prompt == ""
  assert record.status == "waiting"


@pytest.mark.anyio
async def test_enqueue_failure_returns_503(async_client, context, jobs_repo) -> None:
  app.dependency_overrides[get_pipeline_context] = lambda: replace(context, enqueuer=RecordingEnqueuer(fail=True))

  response = await async_client.post("/v1/generate", json={"prompt": "a tower"})

  assert response.status_code == 503
  assert response.json()["detail"] == "Service Unavailable"
  assert [record.status for record in jobs_repo._jobs.values()] == ["waiting"]


@pytest.mark.anyio
async def test_unknown_job_returns_404(async_client) -> None:
  response = await async_client.get("/v1/jobs/does-not-exist")
  assert response.status_code == 404
  assert response.json()["code"] == "not-found"


@pytest.mark.anyio
async def test_failed_generation_is_acknowledged_and_recorded(async_client, context, jobs_repo) -> None:
  failing = replace(context, generation_client=FakeGenerationClient(open_error=GenerationFailed("Generation service returned 504: incomplete")))
  app.dependency_overrides[get_pipeline_context] = lambda: failing
  await seed_job(jobs_repo, "job-1")

  response = await async_client.post("/internal/tasks/process-job", json={"prompt": "a tower", "jobId": "job-1"}, headers=TASK_HEADERS)
  assert response.status_code == 200
  assert response.json() == {"jobId": "job-1", "status": "failed"}

  body = (await async_client.get("/v1/jobs/job-1")).json()
  assert body["status"] == "failed"
  assert body["error"]["reason"] == "generation_failed"
  assert body["artifact"] is None


@pytest.mark.anyio
@pytest.mark.parametrize("body", [{"prompt": "a tower"}, {"prompt": "a tower", "jobId": ""}, {"prompt": 3, "jobId": "job-1"}])
async def test_malformed_work_item_returns_422(async_client, body) -> None:
  response = await async_client.post("/internal/tasks/process-job", json=body, headers=TASK_HEADERS)
  assert response.status_code == 422


@pytest.mark.anyio
async def test_bearer_secret_is_accepted(async_client, jobs_repo) -> None:
  await seed_job(jobs_repo, "job-1")
  response = await async_client.post("/internal/tasks/process-job", json={"prompt": "a tower", "jobId": "job-1"}, headers={"authorization": f"Bearer {TASK_SECRET}"})
  assert response.json()["status"] == "finished"


@pytest.mark.anyio
async def test_orphaned_jobs_listing(async_client, jobs_repo) -> None:
  await seed_job(jobs_repo, "stuck", created_at="2020-01-01T00:00:00Z")

  assert (await async_client.get("/internal/jobs/orphaned")).status_code == 403

  response = await async_client.get("/internal/jobs/orphaned", params={"older_than_seconds": 60}, headers=TASK_HEADERS)
  assert response.status_code == 200
  body = response.json()
  assert body["horizonSeconds"] == 60
  assert [job["jobId"] for job in body["jobs"]] == ["stuck"]


@pytest.mark.anyio
async def test_local_queue_delivers_in_process(async_client, context, settings, jobs_repo) -> None:
  enqueuer = LocalHttpEnqueuer(settings)
  app.dependency_overrides[get_pipeline_context] = lambda: replace(context, enqueuer=enqueuer)

  response = await async_client.post("/v1/generate", json={"prompt": "a small stone tower"})
  job_id = response.json()["jobId"]
  await enqueuer.drain()

  record = await jobs_repo.get_job(job_id)
  assert record.status == "finished"
  assert jobs_repo.history[job_id] == ["started", "finished"]


@pytest.mark.anyio
async def test_queue_delivery_is_tagged_in_request_log(async_client, jobs_repo, caplog) -> None:
  await seed_job(jobs_repo, "job-1")
  headers = {**TASK_HEADERS, "x-cloudtasks-taskname": "task-42", "x-cloudtasks-taskretrycount": "3", "x-request-id": "trace-0001-abcd"}

  with caplog.at_level(logging.INFO, logger="schemgen.core.middleware"):
    response = await async_client.post("/internal/tasks/process-job", json={"prompt": "a tower", "jobId": "job-1"}, headers=headers)

  assert response.headers["x-request-id"] == "trace-0001-abcd"
  lines = [record.getMessage() for record in caplog.records if record.name == "schemgen.core.middleware"]
  assert len(lines) == 2
  assert all("request_id=trace-0001-abcd" in line and "task=task-42 retry=3" in line for line in lines)


@pytest.mark.anyio
async def test_request_log_omits_query_and_mints_ids(async_client, caplog) -> None:
  with caplog.at_level(logging.INFO, logger="schemgen.core.middleware"):
    response = await async_client.get("/health", params={"token": "secret-value"}, headers={"x-request-id": "bad id!"})

  assert response.headers["x-request-id"] != "bad id!"
  assert "secret-value" not in caplog.text
  assert "task=" not in caplog.text
