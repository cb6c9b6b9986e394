import os

from aws_cdk import (
    Stack,
    Duration,
    RemovalPolicy,
    CfnOutput,
    Tags,
    aws_ec2 as ec2,
    aws_rds as rds,
    aws_lambda as lambda_,
    aws_apigatewayv2 as apigwv2,
    aws_apigatewayv2_integrations as apigwv2_integrations,
    aws_logs as logs,
    aws_cloudwatch as cloudwatch,
)
from constructs import Construct

LAMBDA_ASSET_DIR = os.path.join(os.path.dirname(__file__), "lambda")

DB_NAME = "analytics"


class ScaleFinderAnalyticsStack(Stack):

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Common tags for all resources
        Tags.of(self).add("Project", "ScaleFinder")
        Tags.of(self).add("Component", "analytics")
        Tags.of(self).add("Env", "dev")

        # 1) Network for the database (Data API traffic never enters the VPC)
        vpc = ec2.Vpc(
            self, "AnalyticsVpc",
            max_azs=2,
            nat_gateways=0,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="isolated",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                )
            ]
        )

        # 2) Aurora Serverless v2 cluster with the Data API
        cluster = rds.DatabaseCluster(
            self, "AnalyticsCluster",
            engine=rds.DatabaseClusterEngine.aurora_postgres(
                version=rds.AuroraPostgresEngineVersion.VER_15_5
            ),
            writer=rds.ClusterInstance.serverless_v2("writer"),
            serverless_v2_min_capacity=0.5,
            serverless_v2_max_capacity=2,
            credentials=rds.Credentials.from_generated_secret("analytics_admin"),
            default_database_name=DB_NAME,
            enable_data_api=True,
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
            removal_policy=RemovalPolicy.SNAPSHOT
        )

        # 3) Lambda Function
        # Track handler
        track_handler = lambda_.Function(
            self, "TrackHandler",
            runtime=lambda_.Runtime.PYTHON_3_11,
            handler="track_handler.handler",
            code=lambda_.Code.from_asset(LAMBDA_ASSET_DIR),
            timeout=Duration.seconds(10),
            log_retention=logs.RetentionDays.ONE_WEEK,
            environment={
                "DB_CLUSTER_ARN": cluster.cluster_arn,
                "DB_SECRET_ARN": cluster.secret.secret_arn,
                "DB_NAME": DB_NAME,
                "ALLOWED_ORIGIN": "https://scalefinder.studio",
                "DEV_ORIGIN_PREFIX": "http://localhost",
            }
        )

        # Grant Data API access (includes reading the credentials secret)
        cluster.grant_data_api_access(track_handler)

        # 4) API Gateway HTTP API
        http_api = apigwv2.HttpApi(
            self, "AnalyticsHttpApi",
            api_name="scalefinder-analytics-api"
        )

        track_integration = apigwv2_integrations.HttpLambdaIntegration(
            "TrackIntegration",
            track_handler
        )

        # Preflight is answered by the handler itself
        http_api.add_routes(
            path="/api/track",
            methods=[apigwv2.HttpMethod.POST, apigwv2.HttpMethod.OPTIONS],
            integration=track_integration
        )

        # 5) CloudWatch Alarm for API 5XX Errors
        api_5xx_alarm = cloudwatch.Alarm(
            self, "Api5xxAlarm",
            metric=cloudwatch.Metric(
                namespace="AWS/ApiGateway",
                metric_name="5XXError",
                dimensions_map={
                    "ApiId": http_api.api_id,
                    "Stage": "$default"
                },
                statistic="Sum",
                period=Duration.minutes(5)
            ),
            threshold=1,
            evaluation_periods=1,
            treat_missing_data=cloudwatch.TreatMissingData.NOT_BREACHING
        )

        # 6) CDK Outputs
        CfnOutput(
            self, "TrackEndpointUrl",
            value=(http_api.url or "") + "api/track",
            description="Analytics track endpoint URL"
        )

        CfnOutput(
            self, "ClusterArn",
            value=cluster.cluster_arn,
            description="Aurora cluster ARN (Data API resource)"
        )

        CfnOutput(
            self, "SecretArn",
            value=cluster.secret.secret_arn,
            description="Secrets Manager ARN for database credentials"
        )

        CfnOutput(
            self, "Api5xxAlarmName",
            value=api_5xx_alarm.alarm_name,
            description="CloudWatch Alarm name for API 5XX errors"
        )
