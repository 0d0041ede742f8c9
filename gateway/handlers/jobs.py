"""
Job Trace Handler

Returns the log output of a pipeline job.
"""

from starlette.requests import Request
from starlette.responses import Response

from gateway.context import RequestContext
from gateway.handlers.responses import call_gitlab, respond
from gateway.models import JobTraceRequest, JobTraceResponse
from gateway.services.capabilities import JobTraceGetter


class JobTraceService:
    """Terminal handler for /job."""

    def __init__(self, context: RequestContext, gitlab: JobTraceGetter):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: JobTraceRequest = request.state.payload

        trace = await call_gitlab(
            self.gitlab.get_job_trace(self.context.project_id, payload.job_id),
            "Could not get trace file for job",
            request
        )
        return respond(JobTraceResponse(message="Log file read", file=trace))
