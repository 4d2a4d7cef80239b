"""
Unit Test Fixtures for Timeline Service

Pure engine tests: no I/O, no mocks.
Uses TimelineTestDataFactory from the data contract.
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.timeline.data_contract import TimelineTestDataFactory, utc


@pytest.fixture
def campaign_start():
    return utc(2024, 3, 1)


@pytest.fixture
def dated_campaign(campaign_start):
    """Campaign running March 1st to March 31st 2024"""
    return TimelineTestDataFactory.make_campaign(
        campaign_id="cmp_spring",
        start_date=campaign_start,
        end_date=utc(2024, 3, 31),
    )


@pytest.fixture
def campaign_tasks(dated_campaign):
    """Two dated tasks, one undated task and one task of another campaign"""
    cid = dated_campaign.campaign_id
    return [
        TimelineTestDataFactory.make_task(cid, task_id="tsk_brief", due_date=utc(2024, 3, 3, 17)),
        TimelineTestDataFactory.make_task(
            cid, task_id="tsk_copy", start_date=utc(2024, 3, 5, 9), due_date=utc(2024, 3, 10, 17)
        ),
        TimelineTestDataFactory.make_task(cid, task_id="tsk_someday"),
        TimelineTestDataFactory.make_task("cmp_other", task_id="tsk_foreign", due_date=utc(2024, 3, 4)),
    ]
