#!/usr/bin/env python3
'''
ecs_agent_status.py

Report ECS container agent status for every cluster whose name contains a
substring. Prints one line per container instance and exits 1 if any agent
is not ACTIVE.

Required IAM permissions (minimum):
 - ecs:ListClusters
 - ecs:ListContainerInstances
 - ecs:DescribeContainerInstances

Usage:
  python3 ecs_agent_status.py prod
  python3 ecs_agent_status.py --output tree --region eu-west-1 prod
'''
import argparse
import json
import logging
import sys
from dataclasses import dataclass, field

import boto3
import botocore
from rich.console import Console
from rich.logging import RichHandler
from rich.tree import Tree

__version__ = '0.3.0'

ACTIVE = 'ACTIVE'
OUTPUT_FORMATS = ('text', 'json', 'tree')


class StatusError(Exception):
    pass


class NotFound(StatusError):
    pass


class NoInstances(NotFound):
    pass


class ApiError(StatusError):
    pass


@dataclass(frozen=True)
class AgentRecord:
    cluster: str
    container_instance_arn: str
    ec2_instance_id: str
    agent_status: str

    @property
    def is_active(self):
        return self.agent_status == ACTIVE

    def to_dict(self):
        return {
            'cluster': self.cluster,
            'containerInstanceArn': self.container_instance_arn,
            'ec2InstanceId': self.ec2_instance_id,
            'agentStatus': self.agent_status,
        }

    def __str__(self):
        return (f"Cluster: {self.cluster}, ContainerInstanceARN: {self.container_instance_arn}, "
                f"EC2InstanceID: {self.ec2_instance_id}, AgentStatus: {self.agent_status}")


@dataclass
class Report:
    records: list = field(default_factory=list)
    failed_clusters: list = field(default_factory=list)

    @property
    def inactive(self):
        return [r for r in self.records if not r.is_active]

    @property
    def exit_code(self):
        return 1 if self.inactive or self.failed_clusters else 0


def cluster_name(cluster_arn):
    return cluster_arn.split('/')[-1]


class StatusReporter:
    """Walks clusters -> container instances -> agent status with one ECS client."""

    def __init__(self, ecs_client, logger):
        self.ecs = ecs_client
        self.log = logger

    def list_matching_clusters(self, substring):
        """Return names of clusters containing `substring` (case-sensitive), in API order."""
        clusters = []
        paginator = self.ecs.get_paginator('list_clusters')
        try:
            for page in paginator.paginate():
                for arn in page.get('clusterArns', []):
                    name = cluster_name(arn)
                    if substring in name:
                        clusters.append(name)
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise ApiError(f"error listing clusters: {e}") from e
        if not clusters:
            raise NotFound('no clusters found')
        return clusters

    def list_container_instances(self, cluster):
        arns = []
        paginator = self.ecs.get_paginator('list_container_instances')
        try:
            for page in paginator.paginate(cluster=cluster):
                arns.extend(page.get('containerInstanceArns', []))
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise ApiError(f"error listing container instances for {cluster}: {e}") from e
        if not arns:
            raise NoInstances(f"no container instances found in {cluster}")
        return arns

    def describe_agent(self, cluster, instance_arn):
        """Return (ec2_instance_id, agent_status) for one container instance."""
        try:
            resp = self.ecs.describe_container_instances(cluster=cluster, containerInstances=[instance_arn])
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise ApiError(f"error describing {instance_arn}: {e}") from e
        instances = resp.get('containerInstances', [])
        if not instances:
            reasons = ', '.join(f['reason'] for f in resp.get('failures', []) if 'reason' in f)
            raise NotFound(f"container instance not found: {instance_arn}" + (f" ({reasons})" if reasons else ''))
        ci = instances[0]
        return ci.get('ec2InstanceId', ''), ci.get('status', '')

    def collect_for_cluster(self, cluster):
        records = []
        for arn in self.list_container_instances(cluster):
            ec2_id, status = self.describe_agent(cluster, arn)
            records.append(AgentRecord(cluster, arn, ec2_id, status))
        return records

    def collect(self, clusters):
        report = Report()
        for cluster in clusters:
            try:
                records = self.collect_for_cluster(cluster)
            except NoInstances as e:
                self.log.warning(f"skipping cluster {cluster}: {e}")
                continue
            except StatusError as e:
                self.log.error(f"error getting agents for cluster {cluster}: {e}")
                report.failed_clusters.append(cluster)
                continue
            self.log.debug(f"{len(records)} container instances in {cluster}")
            report.records.extend(records)
        return report


def build_logger(level='INFO', console=None):
    """Build the tool's logger. Logs go to stderr so stdout only carries records."""
    logger = logging.getLogger('ecs_agent_status')
    logger.handlers.clear()
    logger.propagate = False
    handler = RichHandler(console=console or Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter(f"[v{__version__}] %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def render_text(records, out=None):
    for record in records:
        print(record, file=out)


def render_json(records, out=None):
    print(json.dumps([r.to_dict() for r in records], indent=2), file=out)


def render_tree(records, console=None):
    root_tree = Tree("[bold blue]ECS Agent Status[/]")
    cluster_trees = {}
    for record in records:
        if record.cluster not in cluster_trees:
            cluster_trees[record.cluster] = root_tree.add(f"[green]Cluster: {record.cluster}[/]")
        colour = 'green' if record.is_active else 'bold red'
        ci_id = record.container_instance_arn.split('/')[-1]
        cluster_trees[record.cluster].add(
            f"[cyan]Container Instance: {ci_id}[/] (EC2: {record.ec2_instance_id}) [{colour}]{record.agent_status}[/]"
        )
    (console or Console()).print(root_tree)


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        prog='ecs-agent-status',
        description='Report ECS container agent status for clusters matching a substring',
    )
    parser.add_argument('substring', nargs='?', help='substring to match cluster names')
    parser.add_argument('--profile', help='AWS profile to use')
    parser.add_argument('--region', help='AWS region to use')
    parser.add_argument('--output', choices=OUTPUT_FORMATS, default='text', help='output format')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)
    if args.substring is None:
        print('Usage: ecs-agent-status <cluster name substring>', file=sys.stderr)
        sys.exit(1)
    return args


def make_ecs_client(profile=None, region=None):
    session_kwargs = {}
    if profile:
        session_kwargs['profile_name'] = profile
    if region:
        session_kwargs['region_name'] = region
    return boto3.Session(**session_kwargs).client('ecs')


def main(argv=None):
    args = parse_arguments(argv)
    logger = build_logger(args.log_level)

    try:
        ecs = make_ecs_client(args.profile, args.region)
    except botocore.exceptions.BotoCoreError as e:
        logger.critical(f"error creating ECS client: {e}")
        return 1

    reporter = StatusReporter(ecs, logger)
    try:
        clusters = reporter.list_matching_clusters(args.substring)
    except StatusError as e:
        logger.critical(f"error getting clusters: {e}")
        return 1
    logger.info(f"found {len(clusters)} matching clusters")

    report = reporter.collect(clusters)

    if args.output == 'json':
        render_json(report.records)
    elif args.output == 'tree':
        render_tree(report.records)
    else:
        render_text(report.records)

    for record in report.inactive:
        logger.warning(f"agent not active: {record.container_instance_arn} in {record.cluster} ({record.agent_status})")
    return report.exit_code


if __name__ == '__main__':
    sys.exit(main())
