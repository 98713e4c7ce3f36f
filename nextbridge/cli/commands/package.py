import asyncio
from pathlib import Path

from nextbridge.cli.lifecycle import run_lifecycle
from nextbridge.core import console
from nextbridge.models.descriptor import dump_service

DEFAULT_OUTPUT = Path(".serverless") / "serverless.next.yml"


def run(args, plugin) -> None:
    console.step(f"Packaging {plugin.service.service} ({plugin.service.provider.effective_stage})...")
    asyncio.run(run_lifecycle(plugin.hooks, "package:createDeploymentArtifacts"))

    output = Path(args.output) if args.output else plugin.service.service_path / DEFAULT_OUTPUT
    written = dump_service(plugin.service, output)
    console.success(f"Descriptor written to {console.highlight(str(written))}")
