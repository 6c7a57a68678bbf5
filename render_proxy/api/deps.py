from render_proxy.config import settings
from render_proxy.services.admission import AdmissionGate
from render_proxy.services.render import RenderPipeline
from render_proxy.services.session import browser_session
from render_proxy.services.submit import SubmitPipeline

# Every request goes through this one gate, render and submit alike
admission_gate = AdmissionGate(settings.MAX_CONCURRENCY)

render_pipeline = RenderPipeline(browser_session, admission_gate)
submit_pipeline = SubmitPipeline(browser_session, admission_gate)


def get_session():
    return browser_session


def get_gate() -> AdmissionGate:
    return admission_gate


def get_render_pipeline() -> RenderPipeline:
    return render_pipeline


def get_submit_pipeline() -> SubmitPipeline:
    return submit_pipeline
