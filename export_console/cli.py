import asyncio
import logging
from typing import List, Optional

import typer

from . import config
from .client import ExportServiceClient, client_from_env
from .controller import ControllerState, ExportLifecycleController, Notification
from .credentials import HFCredentials
from .schema import EXPORT_DESTINATIONS, EXPORT_TYPES, ExportJob

app = typer.Typer(help="Export trained models and follow export progress.")
logger = logging.getLogger(__name__)


def _echo_notification(notification: Notification):
    color = {"success": typer.colors.GREEN, "error": typer.colors.RED}.get(
        notification.level
    )
    typer.secho(notification.message, fg=color)


def _echo_job(job: ExportJob):
    typer.echo(f"Job:        {job.job_id}")
    typer.echo(f"Base model: {job.base_model_id} ({job.provider})")
    typer.echo(f"Modality:   {job.modality}")
    for export_type in EXPORT_TYPES:
        for destination in EXPORT_DESTINATIONS:
            path = job.export_path(export_type, destination)
            if path:
                typer.echo(f"  {export_type:<8} {destination:<7} {path}")


def _echo_banner(controller: ExportLifecycleController):
    banner = controller.banner()
    if banner is None:
        return
    line = f"[{banner.kind}] {banner.title}"
    if banner.message:
        line += f" - {banner.message}"
    typer.echo(line)


async def _follow(controller: ExportLifecycleController) -> int:
    await controller.wait_settled()
    _echo_banner(controller)
    if controller.state == ControllerState.NOT_FOUND or controller.error:
        return 1
    latest = controller.job.latest_export if controller.job else None
    return 1 if latest is not None and latest.status == "failed" else 0


def _make_client() -> ExportServiceClient:
    try:
        return client_from_env()
    except ValueError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.LOG_LEVEL, format=config.LOG_FORMAT
    )


@app.command("list")
def list_jobs():
    """List jobs that can be exported."""

    async def run():
        async with _make_client() as client:
            return await client.list_exports()

    for job in asyncio.run(run()):
        typer.echo(f"{job.job_id}\t{job.job_name or '-'}\t{job.base_model_id}")


@app.command()
def status(job_id: str):
    """Show a job's artifacts and latest export."""

    async def run():
        async with _make_client() as client:
            controller = ExportLifecycleController(
                job_id, client, on_notify=_echo_notification
            )
            try:
                await controller.load()
                if controller.job is None:
                    typer.secho(controller.error or "Export job not found.", fg=typer.colors.RED)
                    return 1
                _echo_job(controller.job)
                _echo_banner(controller)
                return 0
            finally:
                controller.close()

    raise typer.Exit(code=asyncio.run(run()))


@app.command()
def watch(job_id: str):
    """Poll a job until its running export finishes."""

    async def run():
        async with _make_client() as client:
            controller = ExportLifecycleController(
                job_id,
                client,
                poll_interval=config.POLL_INTERVAL_SECONDS,
                on_notify=_echo_notification,
            )
            try:
                await controller.load()
                return await _follow(controller)
            finally:
                controller.close()

    raise typer.Exit(code=asyncio.run(run()))


@app.command()
def export(
    job_id: str,
    export_type: str = typer.Option(..., "--type", "-t", help="adapter, merged or gguf"),
    destination: List[str] = typer.Option(
        ["gcs"], "--dest", "-d", help="gcs and/or hf_hub"
    ),
    hf_repo_id: Optional[str] = typer.Option(None, "--hf-repo-id"),
    hf_token: Optional[str] = typer.Option(
        None, "--hf-token", help="Defaults to the locally stored Hugging Face token"
    ),
    no_watch: bool = typer.Option(False, "--no-watch"),
):
    """Start an export and follow it to completion."""
    credentials = HFCredentials(hf_token=hf_token, hf_repo_id=hf_repo_id)
    if "hf_hub" in destination and not hf_token:
        credentials = HFCredentials.from_store(hf_repo_id)

    async def run():
        async with _make_client() as client:
            controller = ExportLifecycleController(
                job_id,
                client,
                poll_interval=config.POLL_INTERVAL_SECONDS,
                on_notify=_echo_notification,
            )
            try:
                await controller.load()
                if controller.state == ControllerState.NOT_FOUND:
                    typer.secho(controller.error or "Export job not found.", fg=typer.colors.RED)
                    return 1
                notified = len(controller.notifications)
                ack = await controller.submit_export(export_type, destination, credentials)
                if ack is None:
                    for field, message in controller.field_errors.items():
                        typer.secho(f"{field}: {message}", fg=typer.colors.RED)
                    # Service failures were already echoed as notifications
                    if controller.error and len(controller.notifications) == notified:
                        typer.secho(controller.error, fg=typer.colors.RED)
                    return 1
                if no_watch:
                    _echo_banner(controller)
                    return 0
                return await _follow(controller)
            finally:
                controller.close()

    raise typer.Exit(code=asyncio.run(run()))
