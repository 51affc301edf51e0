#!/usr/bin/env python3
"""
Web Interface for Drunk DM
A roll form plus a small REST API over the same DrunkDM application
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import uvicorn

from drunkdm_commands import PROMPT_LABEL, ParseError
from drunkdm import DrunkDM, format_roll_line


class RollRequest(BaseModel):
	expression: str


class SettingsUpdate(BaseModel):
	current_file: str


class DrunkDMWebInterface:
	"""Bridge between HTTP requests and the DrunkDM application"""

	def __init__(self, app: DrunkDM):
		self.app = app
		self.logger = logging.getLogger(__name__)

		if app.config_manager and app.config_manager.config_file_path:
			self.logger.info(f"Web interface using config file: {app.config_manager.config_file_path}")
		else:
			self.logger.info("Web interface using default configuration")

	def roll(self, expression: str) -> dict:
		"""Roll, append to the current note, and report both"""
		try:
			result = self.app.roll(expression)
		except ParseError as e:
			raise HTTPException(
				status_code=400,
				detail={"error": str(e), "position": e.position, "fragment": e.fragment},
			)

		line = format_roll_line(result.expression_text, result.total)
		appended = self.app.add_to_current_file(line)
		response = result.to_dict()
		response.update({
			"line": line,
			"summary": result.format_summary(),
			"current_file": self.app.settings.current_file,
			"appended": appended,
			"notice": line if appended else f"File {self.app.current_file_name} not found",
		})
		return response

	def get_settings(self) -> dict:
		return {
			"current_file": self.app.settings.current_file,
			"extension": self.app.store.extension,
		}

	def update_settings(self, current_file: str) -> dict:
		if not current_file.strip():
			raise HTTPException(status_code=400, detail={"error": "Current file must not be empty"})
		result = self.app.dispatcher.get("file").execute(current_file)
		if result.is_error:
			raise HTTPException(status_code=400, detail={"error": result.error})
		return {**result.details, "summary": result.summary}

	def list_files(self) -> dict:
		result = self.app.dispatcher.get("files").execute("")
		return {
			"files": result.details.get("files", []),
			"current_file": self.app.settings.current_file,
		}


# FastAPI application setup
app = FastAPI(title="Drunk DM", version="1.0.0")

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_methods=["*"],
	allow_headers=["*"],
)

# Global web interface instance
web_interface: Optional[DrunkDMWebInterface] = None


def initialize_web_interface(drunk_dm: DrunkDM) -> DrunkDMWebInterface:
	"""Bind the HTTP app to a DrunkDM instance"""
	global web_interface
	web_interface = DrunkDMWebInterface(drunk_dm)
	return web_interface


def _require_interface() -> DrunkDMWebInterface:
	if web_interface is None:
		raise HTTPException(status_code=503, detail="Drunk DM not initialized")
	return web_interface


INDEX_HTML = """<!DOCTYPE html>
<html>
<head><title>Drunk DM</title></head>
<body>
	<h2>{label}</h2>
	<form id="roll-form">
		<input id="expression" type="text" autofocus>
		<button type="submit">Roll</button>
	</form>
	<p id="notice"></p>
	<script>
	document.getElementById("roll-form").addEventListener("submit", async (event) => {{
		event.preventDefault();
		const input = document.getElementById("expression");
		const response = await fetch("/api/roll", {{
			method: "POST",
			headers: {{"Content-Type": "application/json"}},
			body: JSON.stringify({{expression: input.value}})
		}});
		const data = await response.json();
		document.getElementById("notice").textContent =
			response.ok ? data.summary + " | " + data.notice : data.detail.error;
	}});
	</script>
</body>
</html>
"""


@app.get("/")
async def get_index():
	"""Serve the roll form"""
	return HTMLResponse(content=INDEX_HTML.format(label=PROMPT_LABEL), status_code=200)


@app.post("/api/roll")
def post_roll(request: RollRequest):
	return _require_interface().roll(request.expression)


@app.get("/api/settings")
def get_settings():
	return _require_interface().get_settings()


@app.put("/api/settings")
def put_settings(update: SettingsUpdate):
	return _require_interface().update_settings(update.current_file)


@app.get("/api/files")
def get_files():
	return _require_interface().list_files()


def run_web_server(host="127.0.0.1", port=8000, config=None):
	"""Run the web server"""
	logger = logging.getLogger(__name__)
	logger.info(f"Starting Drunk DM web interface on http://{host}:{port}")

	if config and hasattr(config, 'console'):
		log_level = "debug" if config.console.verbose else "info"
		access_log = not config.console.quiet
	else:
		log_level = "info"
		access_log = True

	uvicorn.run(
		app,
		host=host,
		port=port,
		log_level=log_level,
		access_log=access_log
	)


if __name__ == "__main__":
	from drunkdm import main
	main(["--web-interface"])
