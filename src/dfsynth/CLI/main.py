# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for dfsynth.
"""
import logging
import os
import click
from dotenv import dotenv_values
from ..BUILDERS.description_builder import DescriptionBuilder
from ..PARSERS.build_parser import BuildParser
from ..UTILS.errors import DockerfileError


@click.group()
@click.option('--file', '-f', default='dfsynth.yml', help='Build description path')
@click.option('--env-file', default=None, help='Dotenv file overlaying the environment for ${VAR} interpolation')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, file, env_file, verbose):
    """
    dfsynth - Dockerfile synthesis.

    Generates a Dockerfile and its staged build context from a YAML build description.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    context = dict(os.environ)
    if env_file:
        context.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    ctx.obj['parser'] = BuildParser(context)


def _load(ctx):
    """Parses the build description and declares its Dockerfile."""
    file = ctx.obj['file']
    if not os.path.exists(file):
        raise click.ClickException(f"{file} not found.")
    try:
        description = ctx.obj['parser'].parse(file)
        return DescriptionBuilder(description).create()
    except (DockerfileError, OSError) as e:
        raise click.ClickException(str(e))


@cli.command()
@click.option('--output', '-o', default=None, help='Dockerfile path, <context_dir>/Dockerfile by default')
@click.pass_context
def build(ctx, output):
    """Stage the build context and write the Dockerfile."""
    dockerfile = _load(ctx)
    try:
        staged = dockerfile.stage()
        dockerfile.finalize()
        path = dockerfile.write_to_file(output or dockerfile.context_dir / "Dockerfile")
    except (DockerfileError, OSError) as e:
        raise click.ClickException(str(e))
    click.echo(f"Staged {staged} item(s) into {dockerfile.context_dir}")
    click.echo(f"Dockerfile written to {path}")


@cli.command()
@click.pass_context
def show(ctx):
    """Print the Dockerfile without staging the build context."""
    dockerfile = _load(ctx)
    dockerfile.finalize()
    click.echo(dockerfile.render(), nl=False)


@cli.command()
@click.pass_context
def plan(ctx):
    """List staging actions without running them."""
    dockerfile = _load(ctx)
    backlog = dockerfile.staging_backlog
    click.echo(f"{'INSTRUCTION':12} {'KIND':8} TARGET")
    click.echo("-" * 40)
    for action in backlog:
        click.echo(f"{action.instruction:12} {action.kind.value:8} {action.target}")
    click.echo(f"{len(backlog)} staging action(s)")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
