"""Interactive wizard driver.

:class:`WizardApp` owns every side effect of the wizard: reading input,
printing screens, talking to the store and running remote operations. The
state logic itself lives in :func:`falcon_cli.ui.state.transition`.

Effects fire only when a screen is *entered*:

- HOME, GALLERY, SOURCE: reload history (SOURCE with no history fails)
- RUNNING: run the drafted operation through :mod:`falcon_cli.core.operations`
- SAVING: persist the edited settings with :meth:`Store.save_config`

The loop is single-threaded: read one line, turn it into one event,
transition, run entry effects, render. Every effect is awaited before the
next line is read.
"""

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console

from falcon_cli.api.gateway import FalGateway
from falcon_cli.core.config import settings
from falcon_cli.core.errors import FalconError, ValidationError
from falcon_cli.core.images import open_image
from falcon_cli.core.models import FalconConfig
from falcon_cli.core.operations import (
    OperationResult,
    SourceImage,
    run_generate,
    run_remove_background,
    run_upscale,
    run_variations,
)
from falcon_cli.core.store import Store

from .components import render_screen
from .input import options_for, parse_input
from .models import (
    Choose,
    Draft,
    Event,
    Flow,
    HistoryLoaded,
    OperationFailed,
    OperationSucceeded,
    Screen,
    WizardState,
)
from .state import transition

logger = logging.getLogger(__name__)

HISTORY_SCREENS = frozenset({Screen.HOME, Screen.GALLERY, Screen.SOURCE})

GatewayFactory = Callable[[FalconConfig], FalGateway]
InputFunc = Callable[[], str]


def default_gateway(config: FalconConfig) -> FalGateway:
    return FalGateway(api_key=settings.fal_key, config=config, base_url=settings.base_url)


class WizardApp:
    """Run the wizard until the user quits.

    Attributes:
        store: Config and history storage
        console: rich console used for all output
        state: Current wizard state
    """

    def __init__(
        self,
        store: Store,
        console: Optional[Console] = None,
        gateway_factory: Optional[GatewayFactory] = None,
        input_func: Optional[InputFunc] = None,
    ) -> None:
        """Initialise the driver.

        Args:
            store: Config and history storage
            console: Output console (default: a new stdout console)
            gateway_factory: Builds a gateway for each operation
            input_func: Reads one line of input; raises EOFError at end
        """
        self.store = store
        self.console = console or Console()
        self.gateway_factory = gateway_factory or default_gateway
        self.input_func = input_func or self._read_line
        self.state = WizardState()

    def _read_line(self) -> str:
        return self.console.input("[bold cyan]›[/bold cyan] ")

    async def run(self) -> WizardState:
        """Main loop. Returns the final state."""
        try:
            config = self.store.load_config()
        except (FalconError, OSError) as e:
            logger.warning(f"Could not load configuration, using defaults: {e}")
            config = FalconConfig()
        self.state = WizardState(config=config, draft=Draft.from_config(config))
        logger.info("Wizard started")
        await self._enter()

        while self.state.screen != Screen.EXIT:
            self.render()
            try:
                raw = await asyncio.to_thread(self.input_func)
            except (EOFError, KeyboardInterrupt):
                logger.info("Input closed, exiting wizard")
                break

            options = options_for(self.state)
            event = parse_input(self.state, raw, options)
            if event is None:
                self.state = replace(self.state, error="Unrecognised input", notice=None)
                continue

            if self.state.screen == Screen.DONE and event == Choose("open"):
                await self._open_subject()
                continue

            await self.dispatch(event)

        logger.info("Wizard finished")
        return self.state

    def render(self) -> None:
        self.console.clear()
        self.console.print(render_screen(self.state))

    async def dispatch(self, event: Event) -> None:
        """Apply an event and run the effects of the screen it leads to."""
        previous = self.state.screen
        self.state = transition(self.state, event)
        logger.debug(f"{type(event).__name__}: {previous.value} -> {self.state.screen.value}")
        if self.state.screen != previous:
            await self._enter()

    # -- Effects ------------------------------------------------------------

    async def _enter(self) -> None:
        screen = self.state.screen
        if screen in HISTORY_SCREENS:
            await self._load_history()
        elif screen == Screen.RUNNING:
            await self._run_operation()
        elif screen == Screen.SAVING:
            await self._save_settings()

    async def _load_history(self) -> None:
        try:
            history = self.store.load_history()
        except (FalconError, OSError) as e:
            await self.dispatch(OperationFailed(str(e)))
            return

        self.state = transition(
            self.state, HistoryLoaded(tuple(history.newest_first()), history.total_cost)
        )
        if self.state.screen == Screen.SOURCE and not self.state.history:
            await self.dispatch(OperationFailed("No previous generation found"))

    async def _run_operation(self) -> None:
        draft = self.state.draft
        config = self.state.config
        try:
            with self.console.status(f"{draft.flow.value.capitalize()}..."):
                result = await self.execute(draft, config)
        except FalconError as e:
            logger.warning(f"{draft.flow.value} failed: {e}")
            await self.dispatch(OperationFailed(str(e)))
            return
        except Exception as e:
            logger.error(f"Unexpected error during {draft.flow.value}: {e}", exc_info=True)
            await self.dispatch(OperationFailed(f"Unexpected error: {e}"))
            return

        await self.dispatch(OperationSucceeded(result))
        if config.open_after_generate and result.first is not None:
            await self._open_path(result.first.path)

    async def execute(self, draft: Draft, config: FalconConfig) -> OperationResult:
        """Run the operation a draft describes."""
        source = draft.source
        async with self.gateway_factory(config) as gateway:
            if draft.flow == Flow.GENERATE:
                return await run_generate(
                    gateway,
                    self.store,
                    prompt=draft.prompt,
                    model=draft.model,
                    aspect=draft.aspect,
                    resolution=draft.resolution,
                    num_images=draft.num_images,
                )
            if source is None:
                raise ValidationError("No source image selected")
            if draft.flow == Flow.EDIT:
                return await run_generate(
                    gateway,
                    self.store,
                    prompt=draft.prompt,
                    model=draft.model,
                    aspect=draft.aspect,
                    resolution=draft.resolution,
                    edit_source=Path(source.output),
                    filename_prefix="edit",
                    kind="edit",
                )
            if draft.flow == Flow.VARIATIONS:
                return await run_variations(
                    gateway,
                    self.store,
                    source,
                    prompt=draft.prompt,
                    model=draft.model,
                    aspect=draft.aspect,
                    resolution=draft.resolution,
                    num_images=draft.num_images,
                )
            if draft.flow == Flow.UPSCALE:
                return await run_upscale(
                    gateway,
                    self.store,
                    SourceImage.from_generation(source),
                    model=config.upscaler,
                    scale=draft.scale,
                )
            return await run_remove_background(
                gateway,
                self.store,
                SourceImage.from_generation(source),
                model=config.background_remover,
            )

    async def _save_settings(self) -> None:
        patch = self.state.settings_draft or self.state.config
        try:
            saved = self.store.save_config(patch)
        except (FalconError, OSError) as e:
            await self.dispatch(OperationFailed(str(e)))
            return
        await self.dispatch(OperationSucceeded(saved))

    async def _open_subject(self) -> None:
        subject = self.state.subject
        if subject is not None:
            await self._open_path(Path(subject.output))

    async def _open_path(self, path: Path) -> None:
        try:
            await open_image(path)
        except FalconError as e:
            logger.warning(f"Could not open {path}: {e}")
            self.console.print(f"[red]{e}[/red]")
