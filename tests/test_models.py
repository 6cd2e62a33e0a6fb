"""Unit tests for the shared data model."""

import pytest

from rollout.errors import SelectorError
from rollout.models import (
    HostContext, HostReport, JobOutcome, JobStatus, Release, ServiceProfile,
    StepResult, TargetSelector
)


def test_release_artifact_keys():
    """Test artifact key templating."""
    release = Release('20260124-120000', 'backend-api', 'apps/backend')

    assert release.artifact_key == 'apps/backend/backend-api-20260124-120000.tar.gz'
    assert release.checksum_key == 'apps/backend/backend-api-20260124-120000.sha256'


def test_job_status_classification():
    """Test terminal and failed status sets."""
    assert not JobStatus.PENDING.terminal
    assert not JobStatus.IN_PROGRESS.terminal
    assert JobStatus.SUCCESS.terminal and not JobStatus.SUCCESS.failed
    for status in (JobStatus.FAILED, JobStatus.CANCELLED, JobStatus.TIMED_OUT):
        assert status.terminal and status.failed


def test_service_profile_process_name_defaults_to_service():
    """Test process name fallback."""
    assert ServiceProfile('web-driver', 'apps/frontend').process_name == 'web-driver'
    assert ServiceProfile('web-driver', 'apps/frontend', process_name='web').process_name == 'web'


def test_selector_requires_every_tag():
    """Test selector construction with missing values."""
    with pytest.raises(SelectorError) as exc:
        TargetSelector.for_service('', 'backend-api')
    assert 'environment' in str(exc.value)

    with pytest.raises(SelectorError):
        TargetSelector.for_service('dev', 'backend-api', service_tag_key='')


def test_selector_matches_all_tags():
    """Test tag matching and custom service tag key."""
    selector = TargetSelector.for_service('dev', 'backend-api', service_tag_key='App')
    tags = {'Environment': 'dev', 'App': 'backend-api', 'ManagedBy': 'terraform', 'Name': 'x'}

    assert selector.matches(tags)
    assert not selector.matches({**tags, 'Environment': 'prod'})
    assert not selector.matches({'Environment': 'dev', 'App': 'backend-api'})
    assert selector.describe() == 'Environment=dev, App=backend-api, ManagedBy=terraform'


def test_host_context_round_trip_ignores_unknown_keys():
    """Test context deserialization tolerates extra keys."""
    context = HostContext('r1', 'dev', 'ride', 'backend-api', 'apps/backend', 'backend-api')
    data = context.to_dict()
    data['added_later'] = True

    restored = HostContext.from_dict(data)

    assert restored == context
    assert restored.param_path == '/dev/ride/backend-api'
    assert restored.app_dir == '/opt/apps/backend-api'


def test_host_report_success_and_failed_step():
    """Test report aggregation."""
    report = HostReport('r1')
    assert not report.succeeded

    report.steps = [StepResult('verify', True), StepResult('extract', False, 'ExtractionError', 'bad')]
    assert not report.succeeded
    assert report.failed_step.step == 'extract'


def test_job_outcome_record():
    """Test outcome serialization for deployment records."""
    outcome = JobOutcome(JobStatus.FAILED, command_id='c-1')

    record = outcome.to_record()

    assert record['status'] == 'Failed'
    assert record['command_id'] == 'c-1'
    assert outcome.exit_code == 1
