"""
Command registry: the closed set of commands typed in PR comments.
"""

from __future__ import annotations

import enum
from typing import Any

from .cmds.build_container import BuildContainerCmd, BuildParams
from .cmds.operate_env import OperateEnvCmd, RecreateFromArgs
from .config import Settings
from .errors import UnsupportedCommandError
from .reply_cmd import ReplyCmd

AnyCmd = ReplyCmd[Any, Any, Any]


class CommandName(str, enum.Enum):
    build_api = "build/api"
    build_web = "build/web"
    build_lambda = "build/lambda"
    deploy = "deploy"
    recreate = "recreate"
    destroy = "destroy"
    status = "status"
    db_recreate = "db/recreate"
    db_take_snapshot = "db/take-snapshot"
    db_recreate_from = "db/recreate-from"


def _api_params(st: Settings, namespace: str) -> BuildParams:
    return BuildParams(
        image_repo_name=st.api_repo_name,
        build_dockerfile="./docker/api/Dockerfile",
        project_name=st.api_build_project_name,
    )


def _web_params(st: Settings, namespace: str) -> BuildParams:
    return BuildParams(
        image_repo_name=st.web_repo_name,
        build_dockerfile="./docker/web/Dockerfile",
        project_name=st.web_build_project_name,
        docker_build_args={"API_ORIGIN": f"https://api-{namespace}.{st.preview_domain}"},
    )


def _lambda_params(st: Settings, namespace: str) -> BuildParams:
    return BuildParams(
        image_repo_name=st.lambda_repo_name,
        build_dockerfile="./docker/lambda/Dockerfile",
        project_name=st.lambda_build_project_name,
    )


REGISTRY: dict[CommandName, AnyCmd] = {
    CommandName.build_api: BuildContainerCmd("build/api", "API イメージをビルド", _api_params),
    CommandName.build_web: BuildContainerCmd("build/web", "Web イメージをビルド", _web_params),
    CommandName.build_lambda: BuildContainerCmd(
        "build/lambda", "Lambda イメージをビルド", _lambda_params
    ),
    CommandName.deploy: OperateEnvCmd("deploy", "deploy", "プレビュー環境をデプロイ"),
    CommandName.recreate: OperateEnvCmd("recreate", "recreate", "プレビュー環境を作り直す"),
    CommandName.destroy: OperateEnvCmd("destroy", "destroy", "プレビュー環境を削除"),
    CommandName.status: OperateEnvCmd("status", "status", "プレビュー環境の状態を確認"),
    CommandName.db_recreate: OperateEnvCmd("db/recreate", "db/recreate", "DB を作り直す"),
    CommandName.db_take_snapshot: OperateEnvCmd(
        "db/take-snapshot", "db/take-snapshot", "DB のスナップショットを取得"
    ),
    CommandName.db_recreate_from: OperateEnvCmd(
        "db/recreate-from",
        "db/recreate-from",
        "スナップショットから DB を作り直す",
        arg_schema=RecreateFromArgs,
    ),
}


def known_names() -> tuple[str, ...]:
    return tuple(n.value for n, c in REGISTRY.items() if not c.hidden)


def lookup(name: str) -> AnyCmd | UnsupportedCommandError:
    """Resolve a command; unknown names come back as an error value."""
    try:
        return REGISTRY[CommandName(name)]
    except ValueError:
        return UnsupportedCommandError(name, known_names())


def command_roots() -> frozenset[str]:
    """First path segment of every registered name (`build`, `db`, `deploy`, ...)."""
    return frozenset(n.value.split("/", 1)[0] for n in CommandName)
