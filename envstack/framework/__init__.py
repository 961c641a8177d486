"""Project-specific workflow framework.

Configuration model, workflow context, collaborator contracts, stack
classification and the provider dispatch table. Stage implementations live in
`envstack.stages`; reusable pipeline primitives live in `pipelinekit`.
"""
