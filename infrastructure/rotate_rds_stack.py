"""
Secrets Manager Private RDS Demo - Custom Resource Helpers
Lambda-backed custom resources that resolve values the template cannot compute itself.
"""

from pathlib import Path

import aws_cdk as cdk
from aws_cdk import (
    Stack,
    aws_lambda as _lambda,
    aws_iam as iam,
    CustomResource,
    Duration
)
from constructs import Construct


# Lambda code asset - the flat handler modules under src/
LAMBDA_SOURCE = str(Path(__file__).resolve().parent.parent / "src")

AMI_NAME_FILTER = "amzn2-ami-hvm*gp2"
DB_MASTER_USER_LENGTH = "16"
DB_MASTER_PASSWORD_LENGTH = "32"
DESIRED_NUM_AZS = "2"


class RotateRdsHelpersStack(Stack):
    """
    Custom resource helpers for the private RDS rotation demo.

    Resources:
    - AMIInfo: newest Amazon Linux 2 AMI for the bastion host
    - DBMasterUser / DBMasterPassword: random credentials for the database
    - VpcEndpointServiceAzs: AZs offering the Secrets Manager interface endpoint
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        name_prefix: str = "smdemo",
        project_tag: str = "smproj",
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.name_prefix = name_prefix
        self.project_tag = project_tag
        cdk.Tags.of(self).add("Project", project_tag)

        # 1. IAM - shared execution role for the helper functions
        self.create_execution_role()

        # 2. LAMBDA FUNCTIONS - custom resource providers
        self.create_lambda_functions()

        # 3. CUSTOM RESOURCES - values consumed by the demo environment
        self.create_custom_resources()

        # 4. OUTPUTS
        self.create_outputs()

    def create_execution_role(self):
        """Create the Lambda execution role shared by all helper functions."""

        self.lambda_role = iam.Role(
            self, "LambdaExecutionRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole")
            ]
        )

        # Read-only catalog lookups
        self.lambda_role.add_to_policy(iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=[
                "ec2:DescribeImages",
                "ec2:DescribeVpcEndpointServices"
            ],
            resources=["*"]
        ))

    def _helper_function(self, construct_id: str, handler: str, description: str, name_suffix: str):
        function = _lambda.Function(
            self, construct_id,
            runtime=_lambda.Runtime.PYTHON_3_11,
            handler=handler,
            code=_lambda.Code.from_asset(LAMBDA_SOURCE),
            timeout=Duration.seconds(30),
            memory_size=128,
            role=self.lambda_role,
            environment={
                "LOG_LEVEL": "INFO"
            },
            description=description
        )

        cdk.Tags.of(function).add("Name", f"{self.name_prefix}-{name_suffix}")
        return function

    def create_lambda_functions(self):
        """Create the three custom resource Lambda functions."""

        self.ami_info_function = self._helper_function(
            "AMIInfoFunction",
            "ami_info_handler.lambda_handler",
            "Look up an AMI based on a filter",
            "amilambda"
        )

        self.random_string_function = self._helper_function(
            "RandomStrFunction",
            "random_string_handler.lambda_handler",
            "Generate a random string of characters",
            "rndstrlambda"
        )

        self.endpoint_azs_function = self._helper_function(
            "VpcEndpointServiceAzsFunction",
            "endpoint_azs_handler.lambda_handler",
            "Look up the AZs that are available for a VPC endpoint for a service",
            "vpcazslambda"
        )

    def create_custom_resources(self):
        """Create the Lambda-backed custom resources."""

        self.ami_info = CustomResource(
            self, "AMIInfo",
            service_token=self.ami_info_function.function_arn,
            resource_type="Custom::AMIInfo",
            properties={"NameFilter": AMI_NAME_FILTER}
        )

        self.db_master_user = CustomResource(
            self, "DBMasterUser",
            service_token=self.random_string_function.function_arn,
            resource_type="Custom::DBMasterUser",
            properties={"StringLength": DB_MASTER_USER_LENGTH}
        )

        self.db_master_password = CustomResource(
            self, "DBMasterPassword",
            service_token=self.random_string_function.function_arn,
            resource_type="Custom::DBMasterPassword",
            properties={"StringLength": DB_MASTER_PASSWORD_LENGTH}
        )

        self.endpoint_azs = CustomResource(
            self, "VpcEndpointServiceAzs",
            service_token=self.endpoint_azs_function.function_arn,
            resource_type="Custom::VpcEndpointServiceAzs",
            properties={
                "ServiceName": f"com.amazonaws.{self.region}.secretsmanager",
                "DesiredNumAzs": DESIRED_NUM_AZS
            }
        )

    def create_outputs(self):
        """Create CloudFormation outputs for the resolved values."""

        cdk.CfnOutput(
            self, "BastionAmiId",
            value=self.ami_info.get_att_string("Id"),
            description="AMI for the bastion host"
        )

        cdk.CfnOutput(
            self, "DBUser",
            value=self.db_master_user.get_att_string("RandomString"),
            description="RDS MySQL master user"
        )

        cdk.CfnOutput(
            self, "DBPassword",
            value=self.db_master_password.get_att_string("RandomString"),
            description="RDS MySQL master user initial password"
        )

        cdk.CfnOutput(
            self, "EndpointAzs",
            value=self.endpoint_azs.get_att_string("Azs"),
            description="Availability Zones offering the Secrets Manager endpoint"
        )
