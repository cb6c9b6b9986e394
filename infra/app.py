#!/usr/bin/env python3
import os

import aws_cdk as cdk

from infra.analytics_stack import ScaleFinderAnalyticsStack


app = cdk.App()
ScaleFinderAnalyticsStack(app, "ScaleFinderAnalyticsStack",
    env=cdk.Environment(
        account=os.getenv('CDK_DEFAULT_ACCOUNT'),
        region=os.getenv('CDK_DEFAULT_REGION', 'eu-west-3')
    )
)

app.synth()
