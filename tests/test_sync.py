"""Tests for step synchronization"""
import asyncio
import json

import pytest

from tuture.core.config import Config
from tuture.core.git import GitError, GitManager, GitRunner
from tuture.core.sync import StepSynchronizer, reconcile
from tuture.core.tutorial import FileDiff, Step, Tutorial, TutorialStore


SAMPLE_DIFF = """diff --git a/{path} b/{path}
new file mode 100644
index 0000000..e69de29
--- /dev/null
+++ b/{path}
@@ -0,0 +1 @@
+content
"""


class FakeGitRunner(GitRunner):
    """In-memory git returning canned output"""

    def __init__(self, log, files=None, fail_on=None, delays=None):
        self.log = log
        self.files = files or {}
        self.fail_on = fail_on
        self.delays = delays or {}
        self.calls = []
        self.finished = []

    async def run(self, args):
        self.calls.append(args)
        if "log" in args:
            if self.log is None:
                raise GitError("fatal: your current branch 'master' does not have any commits yet")
            return self.log

        commit = args[-1]
        if commit == self.fail_on:
            raise GitError(f"fatal: bad object {commit}")
        # Yield so that concurrent fetches interleave
        await asyncio.sleep(self.delays.get(commit, 0))
        if "--name-only" in args:
            self.finished.append(("summary", commit))
            return "\n".join(self.files.get(commit, [])) + "\n"
        self.finished.append(("diff", commit))
        return "".join(SAMPLE_DIFF.format(path=f) for f in self.files.get(commit, []))


@pytest.fixture
def config(tmp_path):
    """Create a configuration rooted in a temp project"""
    cfg = Config(str(tmp_path))
    cfg.support_dir.mkdir()
    return cfg


def make_synchronizer(config, runner):
    return StepSynchronizer(GitManager(config, runner=runner), TutorialStore(config))


def test_build_steps_oldest_first(config):
    """Test steps follow chronological order"""
    runner = FakeGitRunner(
        log="ccccccc third\nbbbbbbb second\naaaaaaa first\n",
        files={"aaaaaaa": ["a.py"], "bbbbbbb": ["b.py"], "ccccccc": ["c.py"]},
    )

    steps = asyncio.run(make_synchronizer(config, runner).build_steps())

    assert [s.commit for s in steps] == ["aaaaaaa", "bbbbbbb", "ccccccc"]
    assert [s.name for s in steps] == ["first", "second", "third"]
    assert [s.diff[0].file for s in steps] == ["a.py", "b.py", "c.py"]
    assert all(s.explain == "" for s in steps)


def test_build_steps_skips_reserved_commits(config):
    """Test housekeeping commits never become steps"""
    runner = FakeGitRunner(
        log="ccccccc fix: bug\nbbbbbbb tuture: housekeeping\naaaaaaa feat: add x\n",
        files={"aaaaaaa": ["x.py"], "bbbbbbb": ["tuture.yml"], "ccccccc": ["x.py"]},
    )

    steps = asyncio.run(make_synchronizer(config, runner).build_steps())

    assert [s.commit for s in steps] == ["aaaaaaa", "ccccccc"]
    assert [s.name for s in steps] == ["feat: add x", "fix: bug"]


def test_build_steps_filters_ignored_files(config):
    """Test ignored files are left out of step diffs"""
    runner = FakeGitRunner(
        log="aaaaaaa init\n",
        files={"aaaaaaa": ["src/app.js", "package-lock.json", "yarn.lock", ".gitignore"]},
    )

    steps = asyncio.run(make_synchronizer(config, runner).build_steps())

    assert [d.file for d in steps[0].diff] == ["src/app.js"]


def test_build_steps_empty_repository(config):
    """Test a repository without commits yields no steps"""
    runner = FakeGitRunner(log=None)

    steps = asyncio.run(make_synchronizer(config, runner).build_steps())

    assert steps == []
    assert json.loads(config.diff_archive_path.read_text()) == []


def test_build_steps_writes_diff_archive(config):
    """Test full diffs are stored per commit"""
    runner = FakeGitRunner(
        log="bbbbbbb second\naaaaaaa first\n",
        files={"aaaaaaa": ["a.py"], "bbbbbbb": ["b.py", "c.py"]},
    )

    asyncio.run(make_synchronizer(config, runner).build_steps())

    archive = json.loads(config.diff_archive_path.read_text())
    assert [entry["commit"] for entry in archive] == ["aaaaaaa", "bbbbbbb"]
    assert [f["new_path"] for f in archive[1]["diff"]] == ["b.py", "c.py"]
    assert archive[0]["diff"][0]["hunks"][0]["changes"][0]["content"] == "content"


def test_build_steps_fails_fast(config):
    """Test a failing fetch aborts the whole batch"""
    runner = FakeGitRunner(
        log="bbbbbbb second\naaaaaaa first\n",
        files={"aaaaaaa": ["a.py"], "bbbbbbb": ["b.py"]},
        fail_on="bbbbbbb",
    )

    with pytest.raises(GitError, match="bad object"):
        asyncio.run(make_synchronizer(config, runner).build_steps())


def test_build_steps_out_of_order_completion(config):
    """Test results keep commit order when older fetches finish last"""
    runner = FakeGitRunner(
        log="ccccccc third\nbbbbbbb second\naaaaaaa first\n",
        files={"aaaaaaa": ["a.py"], "bbbbbbb": ["b.py"], "ccccccc": ["c.py"]},
        delays={"aaaaaaa": 0.06, "bbbbbbb": 0.03, "ccccccc": 0},
    )

    steps = asyncio.run(make_synchronizer(config, runner).build_steps())

    summaries = [commit for kind, commit in runner.finished if kind == "summary"]
    diffs = [commit for kind, commit in runner.finished if kind == "diff"]
    assert summaries == ["ccccccc", "bbbbbbb", "aaaaaaa"]
    assert diffs == ["ccccccc", "bbbbbbb", "aaaaaaa"]

    assert [s.commit for s in steps] == ["aaaaaaa", "bbbbbbb", "ccccccc"]
    assert [s.diff[0].file for s in steps] == ["a.py", "b.py", "c.py"]
    archive = json.loads(config.diff_archive_path.read_text())
    assert [entry["commit"] for entry in archive] == ["aaaaaaa", "bbbbbbb", "ccccccc"]
    assert [entry["diff"][0]["new_path"] for entry in archive] == ["a.py", "b.py", "c.py"]


def test_build_steps_many_commits_unique(config):
    """Test N commits produce N steps with unique hashes"""
    hashes = [f"{i:07x}" for i in range(1, 26)]
    log = "".join(f"{h} commit {h}\n" for h in reversed(hashes))
    runner = FakeGitRunner(log=log, files={h: [f"{h}.txt"] for h in hashes})

    steps = asyncio.run(make_synchronizer(config, runner).build_steps())

    assert len(steps) == 25
    assert [s.commit for s in steps] == hashes
    assert len({s.commit for s in steps}) == 25


def test_reconcile_keeps_explanations():
    """Test saved steps win over freshly built ones"""
    old = Tutorial(
        name="Demo",
        steps=[
            Step(
                name="feat: add x",
                commit="aaaaaaa",
                explain="We start by adding x.",
                diff=[FileDiff(file="x.py", explain="The x module.", collapse=True)],
            ),
        ],
    )
    new_steps = [
        Step(name="feat: add x", commit="aaaaaaa", diff=[FileDiff(file="x.py")]),
        Step(name="fix: bug", commit="ccccccc", diff=[FileDiff(file="x.py")]),
    ]

    merged = reconcile(old, new_steps)

    assert [s.commit for s in merged] == ["aaaaaaa", "ccccccc"]
    assert merged[0].explain == "We start by adding x."
    assert merged[0].diff[0].explain == "The x module."
    assert merged[0].diff[0].collapse is True
    assert merged[1].explain == ""


def test_reconcile_inserts_new_step_in_order():
    """Test a new commit lands at its chronological position"""
    old = Tutorial(
        name="Demo",
        steps=[
            Step(name="first", commit="aaaaaaa", explain="one"),
            Step(name="third", commit="ccccccc", explain="three"),
        ],
    )
    new_steps = [
        Step(name="first", commit="aaaaaaa"),
        Step(name="second", commit="bbbbbbb"),
        Step(name="third", commit="ccccccc"),
    ]

    merged = reconcile(old, new_steps)

    assert [s.commit for s in merged] == ["aaaaaaa", "bbbbbbb", "ccccccc"]
    assert [s.explain for s in merged] == ["one", "", "three"]


def test_reconcile_discards_changed_file_list():
    """Test an amended file list is ignored when the hash matches"""
    old = Tutorial(
        name="Demo",
        steps=[Step(name="first", commit="aaaaaaa", diff=[FileDiff(file="old.py")])],
    )
    new_steps = [Step(name="first", commit="aaaaaaa", diff=[FileDiff(file="new.py")])]

    merged = reconcile(old, new_steps)

    assert [d.file for d in merged[0].diff] == ["old.py"]


def test_reconcile_drops_vanished_commits():
    """Test steps of commits no longer in history are dropped"""
    old = Tutorial(name="Demo", steps=[Step(name="gone", commit="ddddddd", explain="x")])

    merged = reconcile(old, [Step(name="first", commit="aaaaaaa")])

    assert [s.commit for s in merged] == ["aaaaaaa"]


def test_reload_is_idempotent(config):
    """Test reloading twice without new commits changes nothing"""
    runner = FakeGitRunner(
        log="bbbbbbb second\naaaaaaa first\n",
        files={"aaaaaaa": ["a.py"], "bbbbbbb": ["b.py"]},
    )
    synchronizer = make_synchronizer(config, runner)
    store = synchronizer.store

    tutorial = Tutorial(name="Demo", steps=asyncio.run(synchronizer.build_steps()))
    tutorial.steps[0].explain = "Hand-written"
    store.save(tutorial)

    asyncio.run(synchronizer.reload())
    first = config.metadata_path.read_text()
    asyncio.run(synchronizer.reload())
    second = config.metadata_path.read_text()

    assert first == second
    assert store.load().steps[0].explain == "Hand-written"
    assert json.loads(config.mirror_path.read_text()) == store.load().to_dict()
