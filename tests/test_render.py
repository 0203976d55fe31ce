import datetime as dt

from fakes import T0

from violet_bot.models import Hint, RenderedComment, Status
from violet_bot.render import (
    marker,
    render_comment,
    render_duration,
    render_ecr_image_digest,
    render_failure_comment,
    render_timestamp,
    render_unsupported_comment,
)


def test_render_duration():
    assert render_duration(dt.timedelta(minutes=3, seconds=12)) == "3分12秒"
    assert render_duration(dt.timedelta(hours=1, seconds=5)) == "1時間0分5秒"
    assert render_duration(dt.timedelta(0)) == "0秒"
    assert render_duration(dt.timedelta(seconds=-3)) == "0秒"


def test_render_timestamp():
    assert render_timestamp(T0, 9) == "2026-10-19 12:00:00 (UTC+09:00)"
    assert render_timestamp(T0, 0) == "2026-10-19 03:00:00 (UTC+00:00)"
    naive = dt.datetime(2026, 10, 19, 3, 0, 0)
    assert render_timestamp(naive, 9) == "2026-10-19 12:00:00 (UTC+09:00)"


def test_render_ecr_image_digest():
    out = render_ecr_image_digest("ap-northeast-1", "web-repo", "sha256:abc")
    assert out.startswith("[`sha256:abc`](https://ap-northeast-1.console.aws.amazon.com/ecr/")
    assert "web-repo" in out


def test_render_comment_drops_falsy_lines_and_empty_hints():
    comment = RenderedComment(
        main=["- first", None, "", "- second"],
        hints=[Hint("詳細", ["- a", None]), Hint("空", [None, ""])],
    )
    body = render_comment("deploy", "u-1", Status.undone, comment)
    lines = body.splitlines()
    assert lines[0] == marker("u-1")
    assert lines[1] == "**/deploy** ⏳"
    assert lines[3:5] == ["- first", "- second"]
    assert "<summary>詳細</summary>" in body
    assert "<summary>空</summary>" not in body
    assert "None" not in body


def test_render_comment_main_order_is_kept():
    comment = RenderedComment(main=["- 1", "- 2", "- 3"])
    body = render_comment("status", "u", Status.success, comment)
    assert body.index("- 1") < body.index("- 2") < body.index("- 3")
    assert "✅" in body


def test_failure_and_unsupported_comments():
    body = render_failure_comment("deploy", ValueError("Image for API not found."))
    assert "❌" in body
    assert "Image for API not found." in body
    body = render_unsupported_comment("nope", ("deploy", "status"))
    assert "`/nope`" in body
    assert "`/deploy`" in body
