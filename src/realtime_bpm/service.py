"""FastAPI service exposing the streaming BPM analyzer.

Clients POST audio frames to `/ingest`; each completed block runs through
the analyzer and the resulting events are kept in `/metrics` and pushed to
WebSocket clients on `/ws`. `/control` carries the configuration keys.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field

from .analyzer import MESSAGE_BPM_STABLE, AnalyzerOptions, BpmEvent, RealTimeBpmAnalyzer
from .processor import BpmProcessor, ProcessorConfig


@dataclass
class State:
    processor: Optional[BpmProcessor] = None
    options: AnalyzerOptions = field(default_factory=AnalyzerOptions)
    buffer_size: int = 4096
    last_result: Optional[dict] = None
    stable_result: Optional[dict] = None
    blocks: int = 0


class ControlModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    continuous_analysis: Optional[bool] = Field(None, alias="continuousAnalysis")
    stabilization_time: Optional[float] = Field(None, alias="stabilizationTime", ge=0.5, le=600.0)
    compute_bpm_delay: Optional[float] = Field(None, alias="computeBpmDelay", ge=0.0, le=600.0)


class IngestModel(BaseModel):
    sample_rate: float = Field(..., gt=0)
    samples: list[float] | list[list[float]]


def make_app(buffer_size: int = 4096) -> FastAPI:
    app = FastAPI(title="Realtime BPM Service", version="0.1.0")

    state = State(buffer_size=buffer_size)
    loop_task: Optional[asyncio.Task] = None
    lock = asyncio.Lock()
    ws_clients: set[WebSocket] = set()

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover - integration
        nonlocal loop_task
        loop_task = asyncio.create_task(stabilization_loop())

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - integration
        nonlocal loop_task
        if loop_task:
            loop_task.cancel()
            try:
                await loop_task
            except asyncio.CancelledError:
                pass
            loop_task = None

    async def stabilization_loop() -> None:  # pragma: no cover - integration
        # fires the re-acquisition deadline even when no audio arrives
        while True:
            await asyncio.sleep(0.5)
            async with lock:
                if state.processor is not None and state.processor.analyzer.poll():
                    state.last_result = None
                    state.stable_result = None

    def get_processor(sample_rate: float) -> BpmProcessor:
        proc = state.processor
        if proc is None or proc.sample_rate != sample_rate:
            # a new stream (or a rate change) starts a new session
            analyzer = RealTimeBpmAnalyzer(state.options)
            proc = BpmProcessor(sample_rate, ProcessorConfig(state.buffer_size), analyzer)
            state.processor = proc
        return proc

    def phase_info() -> dict[str, Any]:
        proc = state.processor
        if proc is None:
            return {"phase": "idle", "threshold": None}
        return {
            "phase": proc.analyzer.phase.value,
            "threshold": proc.analyzer.min_valid_threshold,
        }

    async def broadcast(events: list[BpmEvent]) -> None:
        if not ws_clients or not events:
            return
        dead: list[WebSocket] = []
        for ev in events:
            msg = json.dumps(ev.to_dict())
            for w in ws_clients:
                try:
                    await w.send_text(msg)
                except Exception:
                    dead.append(w)
        for w in dead:
            ws_clients.discard(w)

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.get("/metrics")
    async def get_metrics() -> dict:
        async with lock:
            return {
                "blocks": state.blocks,
                "result": state.last_result,
                "stable": state.stable_result,
                "options": state.options.to_dict(),
                **phase_info(),
            }

    @app.post("/control")
    async def post_control(cfg: ControlModel) -> dict:
        data = cfg.model_dump(exclude_none=True)
        async with lock:
            target = state.processor.analyzer if state.processor else None
            for k, v in data.items():
                if target is not None:
                    target.set_async_configuration(k, v)
                else:
                    setattr(state.options, k, v)
            return {"status": "ok", "options": state.options.to_dict()}

    @app.post("/reset")
    async def post_reset() -> dict:
        async with lock:
            if state.processor is not None:
                state.processor.reset()
            state.last_result = None
            state.stable_result = None
            state.blocks = 0
        return {"status": "ok"}

    @app.post("/ingest")
    async def post_ingest(payload: IngestModel) -> dict:
        if not payload.samples:
            return {"status": "empty"}
        x = np.asarray(payload.samples, dtype=np.float32)
        if x.ndim not in (1, 2):
            raise HTTPException(status_code=422, detail="samples must be 1D or (frames, channels)")
        async with lock:
            proc = get_processor(payload.sample_rate)
            events = proc.process(x)
            for ev in events:
                if ev.message == MESSAGE_BPM_STABLE:
                    state.stable_result = ev.result.to_dict()
                else:
                    state.blocks += 1
                    state.last_result = ev.result.to_dict()
        await broadcast(events)
        return {"status": "ok", "count": int(x.shape[0]), "events": [e.to_dict() for e in events]}

    @app.websocket("/ws")
    async def ws_events(ws: WebSocket) -> None:  # pragma: no cover - integration
        await ws.accept()
        ws_clients.add(ws)
        try:
            while True:
                # keep alive; events are pushed from /ingest
                await asyncio.sleep(30)
        except WebSocketDisconnect:
            ws_clients.discard(ws)
        except Exception:
            ws_clients.discard(ws)

    return app


app = make_app()


def main() -> None:  # pragma: no cover - manual run helper
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":  # pragma: no cover
    main()
