"""Interactive terminal wizard.

Modules
-------
models
    Screens, events, the draft being built and the immutable wizard state.
state
    The pure ``transition(state, event)`` function.
input
    Parsing one line of user input into an event, and the options each
    screen offers.
components
    rich renderables for every screen.
app
    :class:`WizardApp`, the driver that owns I/O and runs the effects.
"""
