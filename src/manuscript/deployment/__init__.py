"""Deployment and container management for manuscript jobs.

This package provides port allocation, descriptor loading, compose rendering
and the deployment pipeline.
"""

from .container_manager import (
    check_container_status,
    job_statuses,
    list_containers,
    render_compose_file,
    show_job_logs,
    start_containers,
    stop_job,
)
from .pipeline import DEPLOY_STEPS, DeploymentState, Step, deploy_manuscript, run_pipeline

__all__ = [
    "DEPLOY_STEPS",
    "DeploymentState",
    "Step",
    "check_container_status",
    "deploy_manuscript",
    "job_statuses",
    "list_containers",
    "render_compose_file",
    "run_pipeline",
    "show_job_logs",
    "start_containers",
    "stop_job",
]
