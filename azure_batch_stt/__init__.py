"""Azure Batch Speech-to-Text demo.

WHY: Shows the full lifecycle of a batch transcription job against the
Speech-to-Text v3.0 REST API: clean up old jobs, submit a new one, poll
until it finishes, and print the recognized text.

HOW: Three layers: a config module (options from settings file, .env,
CLI), an API client (httpx + retry + typed models), and an orchestrator
(core.speech_service) that drives the job lifecycle.

RULES:
- Only one request is in flight at a time
- No local state survives between runs; everything lives in the service
"""

__version__ = "0.1.0"
