"""
Violet Bot (Lambda + CodeBuild + DynamoDB)

Where: AWS Lambda behind a GitHub App webhook, plus SNS / schedule triggers.
What:  Parse slash commands on PR comments, launch CodeBuild jobs, keep one
       entry per command in DynamoDB and re-render the bot comment as the job
       progresses.
Why:   Preview environments and image builds driven from the PR thread.
"""

__all__ = [
    "config",
    "handler",
    "commands",
    "dispatcher",
    "reconciler",
    "registry",
    "render",
    "store",
]
