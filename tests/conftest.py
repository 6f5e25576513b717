import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from scrapesynth_core.proposer import CandidateProposer
from scrapesynth_core.sandbox import LocalSandbox
from scrapesynth_core.tester import CandidateTester

MEETINGS_HTML = """
<html>
<head><title>City Council Meetings</title><script>var x = 1;</script></head>
<body>
  <h1>Upcoming Meetings</h1>
  <div class="meeting">
    <span class="date">Jan 5, 2026</span>
    <span class="time">6:00 PM</span>
    <span class="location">City Hall, Room 200</span>
    <a class="details" href="/meetings/1">Agenda</a>
  </div>
  <div class="meeting">
    <span class="date">Feb 2, 2026</span>
    <span class="time">6:30 PM</span>
    <span class="location">Public Library</span>
    <a class="details" href="/meetings/2">Agenda</a>
  </div>
  <div class="meeting">
    <span class="date">Mar 2, 2026</span>
    <span class="time">7:00 PM</span>
    <span class="location">Community Center</span>
    <a class="details" href="/meetings/3">Agenda</a>
  </div>
</body>
</html>
"""

# Nothing here matches the common container patterns
SECTIONS_HTML = """
<html>
<body>
  <main id="schedule">
    <section class="entry">
      <p class="when">April 7, 2026</p>
      <p class="hour">5:00 PM</p>
      <p class="where">Council Chambers</p>
    </section>
    <section class="entry">
      <p class="when">May 5, 2026</p>
      <p class="hour">5:00 PM</p>
      <p class="where">Annex Building</p>
    </section>
  </main>
</body>
</html>
"""

FIELDS = ["date", "time", "location"]


def model_answer(container, fields):
    """A model response with one fenced JSON block"""
    return {"text": "Here you go:\n```json\n" + json.dumps({"containerSelector": container, "fields": fields}) + "\n```"}


@pytest.fixture
def meetings_html():
    return MEETINGS_HTML


@pytest.fixture
def sections_html():
    return SECTIONS_HTML


@pytest.fixture
def fields():
    return list(FIELDS)


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.timeout = 300
    llm.ainvoke = AsyncMock(return_value=model_answer(".meeting", {"date": ".date", "time": ".time", "location": ".location"}))
    return llm


@pytest.fixture
def proposer(mock_llm):
    return CandidateProposer(mock_llm)


@pytest.fixture
def tester():
    return CandidateTester(LocalSandbox(timeout=10))


@pytest.fixture
def make_answer():
    return model_answer
