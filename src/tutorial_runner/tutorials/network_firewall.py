"""Getting started with AWS Network Firewall.

Creates a stateless and a stateful rule group, a firewall policy, a VPC with
a firewall subnet and a protected subnet, the firewall itself, and the route
tables that send the protected subnet's traffic through the firewall.
"""

import logging
from typing import Any, Final

from pydantic import Field

from tutorial_runner.tutorials.base import BaseTutorial, TutorialOptions
from tutorial_runner.utils.extract import require
from tutorial_runner.workflow.session import TutorialSession

logger: Final = logging.getLogger(__name__)

VPC_CIDR: Final = "10.0.0.0/16"
FIREWALL_SUBNET_CIDR: Final = "10.0.1.0/28"
PROTECTED_SUBNET_CIDR: Final = "10.0.2.0/24"
RULE_GROUP_CAPACITY: Final = 10
FIREWALL_POLL_INTERVAL: Final = 20.0
FIREWALL_READY_TIMEOUT: Final = 600.0


def stateless_rules(blocked_cidr: str) -> dict[str, Any]:
    """Rule group dropping all traffic from ``blocked_cidr``."""
    return {
        "RulesSource": {
            "StatelessRulesAndCustomActions": {
                "StatelessRules": [
                    {
                        "RuleDefinition": {
                            "MatchAttributes": {
                                "Sources": [{"AddressDefinition": blocked_cidr}],
                            },
                            "Actions": ["aws:drop"],
                        },
                        "Priority": 10,
                    }
                ]
            }
        }
    }


def stateful_rules(denied_domain: str) -> dict[str, Any]:
    """Suricata rule group dropping TLS connections to ``denied_domain``."""
    rule = (
        "drop tls $HOME_NET any -> $EXTERNAL_NET any "
        f'(ssl_state:client_hello; tls.sni; content:"{denied_domain}"; '
        'startswith; nocase; endswith; msg:"matching TLS denylisted FQDNs"; '
        "priority:1; flow:to_server, established; sid:1; rev:1;)"
    )
    return {"RulesSource": {"RulesString": rule}}


class NetworkFirewallOptions(TutorialOptions):
    """Options for the Network Firewall tutorial."""

    blocked_cidr: str = Field("192.0.2.0/24", pattern=r"^\d{1,3}(\.\d{1,3}){3}/\d{1,2}$")
    denied_domain: str = Field("evil.com", pattern=r"^[A-Za-z0-9.-]+$")


class NetworkFirewallTutorial(BaseTutorial):
    """Network Firewall in front of a protected subnet."""

    slug = "network-firewall-gs"
    title = "Getting started with AWS Network Firewall"
    description = (
        "Create stateless and stateful rule groups, a firewall policy, a VPC "
        "with a firewall subnet and a protected subnet, a firewall, and route "
        "tables that send traffic between the internet and the protected "
        "subnet through the firewall."
    )
    options_model = NetworkFirewallOptions

    async def run(self, session: TutorialSession, options: NetworkFirewallOptions) -> None:
        stateless = await session.create(
            "network-firewall",
            "create_rule_group",
            resource_type="network-firewall:rule-group",
            id_query="RuleGroupResponse.RuleGroupArn",
            label=session.name("stateless"),
            description="Step 1: Creating the stateless rule group",
            params={
                "RuleGroupName": session.name("stateless"),
                "Type": "STATELESS",
                "Capacity": RULE_GROUP_CAPACITY,
                "RuleGroup": stateless_rules(options.blocked_cidr),
                "Description": f"Drop traffic from {options.blocked_cidr}",
            },
        )
        stateful = await session.create(
            "network-firewall",
            "create_rule_group",
            resource_type="network-firewall:rule-group",
            id_query="RuleGroupResponse.RuleGroupArn",
            label=session.name("stateful"),
            description="Creating the stateful rule group",
            params={
                "RuleGroupName": session.name("stateful"),
                "Type": "STATEFUL",
                "Capacity": RULE_GROUP_CAPACITY,
                "RuleGroup": stateful_rules(options.denied_domain),
                "Description": f"Drop TLS connections to {options.denied_domain}",
            },
        )

        policy = await session.create(
            "network-firewall",
            "create_firewall_policy",
            resource_type="network-firewall:firewall-policy",
            id_query="FirewallPolicyResponse.FirewallPolicyArn",
            label=session.name("policy"),
            description="Step 2: Creating the firewall policy",
            params={
                "FirewallPolicyName": session.name("policy"),
                "FirewallPolicy": {
                    "StatelessDefaultActions": ["aws:forward_to_sfe"],
                    "StatelessFragmentDefaultActions": ["aws:forward_to_sfe"],
                    "StatelessRuleGroupReferences": [
                        {"ResourceArn": stateless.identifier, "Priority": 100}
                    ],
                    "StatefulRuleGroupReferences": [{"ResourceArn": stateful.identifier}],
                },
            },
        )

        vpc_id, gateway_id, firewall_subnet, protected_subnet = await self._create_network(session)

        firewall = await session.create(
            "network-firewall",
            "create_firewall",
            resource_type="network-firewall:firewall",
            id_query="Firewall.FirewallArn",
            label=session.name("firewall"),
            description="Step 4: Creating the firewall",
            params={
                "FirewallName": session.name("firewall"),
                "FirewallPolicyArn": policy.identifier,
                "VpcId": vpc_id,
                "SubnetMappings": [{"SubnetId": firewall_subnet}],
            },
        )
        logger.info("Firewall creation takes several minutes")
        status = await session.wait_for(
            "network-firewall",
            "describe_firewall",
            params={"FirewallArn": firewall.identifier},
            status_query="FirewallStatus.Status",
            targets="READY",
            interval=max(session.settings.poll_interval, FIREWALL_POLL_INTERVAL),
            timeout=FIREWALL_READY_TIMEOUT,
            description="firewall",
        )
        endpoint_id = require(
            status,
            "values(FirewallStatus.SyncStates)[0].Attachment.EndpointId",
            "firewall endpoint ID",
        )

        await self._route_through_firewall(
            session, vpc_id, gateway_id, firewall_subnet, protected_subnet, endpoint_id
        )

        session.output("firewall_arn", firewall.identifier)
        session.output("firewall_endpoint", endpoint_id)
        session.output("protected_subnet", protected_subnet)

    async def _create_network(self, session: TutorialSession) -> tuple[str, str, str, str]:
        vpc_name = session.name("vpc")
        vpc = await session.create(
            "ec2",
            "create_vpc",
            resource_type="ec2:vpc",
            id_query="Vpc.VpcId",
            label=vpc_name,
            description="Step 3: Creating the VPC",
            params={
                "CidrBlock": VPC_CIDR,
                "TagSpecifications": [
                    {"ResourceType": "vpc", "Tags": [{"Key": "Name", "Value": vpc_name}]}
                ],
            },
        )
        gateway = await session.create(
            "ec2",
            "create_internet_gateway",
            resource_type="ec2:internet-gateway",
            id_query="InternetGateway.InternetGatewayId",
            attributes={"vpc_id": vpc.identifier},
        )
        await session.call(
            "ec2",
            "attach_internet_gateway",
            InternetGatewayId=gateway.identifier,
            VpcId=vpc.identifier,
        )

        zones = await session.call(
            "ec2",
            "describe_availability_zones",
            Filters=[{"Name": "state", "Values": ["available"]}],
        )
        zone = require(zones, "AvailabilityZones[0].ZoneName", "availability zone")

        subnet_ids = []
        for kind, cidr in (("fw-subnet", FIREWALL_SUBNET_CIDR), ("subnet", PROTECTED_SUBNET_CIDR)):
            subnet = await session.create(
                "ec2",
                "create_subnet",
                resource_type="ec2:subnet",
                id_query="Subnet.SubnetId",
                label=f"{session.name(kind)} ({cidr})",
                params={"VpcId": vpc.identifier, "CidrBlock": cidr, "AvailabilityZone": zone},
            )
            subnet_ids.append(subnet.identifier)

        firewall_subnet, protected_subnet = subnet_ids
        return vpc.identifier, gateway.identifier, firewall_subnet, protected_subnet

    async def _route_through_firewall(
        self,
        session: TutorialSession,
        vpc_id: str,
        gateway_id: str,
        firewall_subnet: str,
        protected_subnet: str,
        endpoint_id: str,
    ) -> None:
        """Create the three route tables of the firewall's traffic path.

        The firewall subnet reaches the internet directly, the protected
        subnet reaches it through the endpoint, and the gateway's edge route
        table sends returning traffic back through the endpoint.
        """
        tables = (
            (
                "Firewall subnet",
                {"SubnetId": firewall_subnet},
                "0.0.0.0/0",
                {"GatewayId": gateway_id},
            ),
            (
                "Protected subnet",
                {"SubnetId": protected_subnet},
                "0.0.0.0/0",
                {"VpcEndpointId": endpoint_id},
            ),
            (
                "Internet gateway",
                {"GatewayId": gateway_id},
                PROTECTED_SUBNET_CIDR,
                {"VpcEndpointId": endpoint_id},
            ),
        )
        for index, (name, target, destination, hop) in enumerate(tables, start=1):
            route_table = await session.create(
                "ec2",
                "create_route_table",
                resource_type="ec2:route-table",
                id_query="RouteTable.RouteTableId",
                label=f"{name} route table",
                description=f"Step 5.{index}: Routing {name.lower()} traffic",
                params={"VpcId": vpc_id},
            )
            await session.call(
                "ec2",
                "create_route",
                RouteTableId=route_table.identifier,
                DestinationCidrBlock=destination,
                **hop,
            )
            await session.create(
                "ec2",
                "associate_route_table",
                resource_type="ec2:route-table-association",
                id_query="AssociationId",
                label=f"{route_table.identifier} -> {next(iter(target.values()))}",
                params={"RouteTableId": route_table.identifier, **target},
            )
