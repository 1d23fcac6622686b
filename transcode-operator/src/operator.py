#!/usr/bin/env python3
"""
Kolla Transcode Operator

This operator watches TranscodeJob custom resources and creates Kubernetes
Jobs that package an uploaded clip as HLS with ffmpeg. The worker reports
its own result to the API; when a Job fails outright the operator posts the
failure to the API's transcoding webhook instead.
"""
import os
import kopf
import kubernetes
import httpx
import logging
from datetime import datetime, timezone
from typing import Dict, Any

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

GROUP = 'kolla.io'
VERSION = 'v1alpha1'
PLURAL = 'transcodejobs'

WORKER_IMAGE = os.environ.get('WORKER_IMAGE', 'kolla/transcode-worker:latest')
MINIO_ENDPOINT = os.environ.get('MINIO_ENDPOINT', 'kolla-minio:9000')
MINIO_SECRET_NAME = os.environ.get('MINIO_SECRET_NAME', 'kolla-minio-credentials')
JOB_SECRET_NAME = os.environ.get('JOB_SECRET_NAME', 'kolla-job-secret')
JOB_SHARED_SECRET = os.environ.get('JOB_SHARED_SECRET', '')


def secret_env(name: str, secret: str, key: str) -> Dict[str, Any]:
    return {"name": name, "valueFrom": {"secretKeyRef": {"name": secret, "key": key}}}


def build_job(name: str, namespace: str, uid: str, spec: Dict[str, Any]) -> Dict[str, Any]:
    """Batch Job running the transcode worker for one TranscodeJob."""
    clip_id = str(spec['clipId'])

    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {
                "app": "transcode-worker",
                "transcodejob": name,
                "clip-id": clip_id,
            },
            "ownerReferences": [{
                "apiVersion": f"{GROUP}/{VERSION}",
                "kind": "TranscodeJob",
                "name": name,
                "uid": uid,
                "controller": True,
                "blockOwnerDeletion": True,
            }],
        },
        "spec": {
            "ttlSecondsAfterFinished": spec.get('ttlSecondsAfterFinished', 3600),
            "backoffLimit": spec.get('backoffLimit', 2),
            "template": {
                "metadata": {
                    "labels": {
                        "app": "transcode-worker",
                        "transcodejob": name,
                    }
                },
                "spec": {
                    "restartPolicy": "Never",
                    "containers": [{
                        "name": "ffmpeg-hls",
                        "image": WORKER_IMAGE,
                        "env": [
                            {"name": "CLIP_ID", "value": clip_id},
                            {"name": "SOURCE_URL", "value": spec['sourceUrl']},
                            {"name": "OUTPUT_BUCKET", "value": spec['outputBucket']},
                            {"name": "OUTPUT_PREFIX", "value": spec['outputPrefix']},
                            {"name": "CALLBACK_URL", "value": spec['callbackUrl']},
                            {"name": "MINIO_ENDPOINT", "value": MINIO_ENDPOINT},
                            {"name": "MINIO_SECURE", "value": "false"},
                            secret_env("MINIO_ACCESS_KEY", MINIO_SECRET_NAME, "rootUser"),
                            secret_env("MINIO_SECRET_KEY", MINIO_SECRET_NAME, "rootPassword"),
                            secret_env("JOB_SHARED_SECRET", JOB_SECRET_NAME, "secret"),
                        ],
                        "resources": {
                            "requests": {
                                "memory": "1Gi",
                                "cpu": "1000m",
                            },
                            "limits": {
                                "memory": "2Gi",
                                "cpu": "2000m",
                            }
                        },
                    }],
                }
            }
        }
    }


@kopf.on.create(GROUP, VERSION, PLURAL)
def create_transcode_job(spec: Dict[str, Any], name: str, namespace: str, uid: str, **kwargs):
    """
    Handle creation of a TranscodeJob custom resource.
    Creates a Kubernetes Job that runs the transcode worker.
    """
    logger.info(f"Creating transcode job for TranscodeJob {namespace}/{name}")

    api = kubernetes.client.BatchV1Api()
    try:
        api.create_namespaced_job(namespace=namespace, body=build_job(name, namespace, uid, spec))
        logger.info(f"Created Job {name} for clip {spec['clipId']}")

        return {
            'phase': 'Pending',
            'jobName': name,
            'startTime': datetime.now(timezone.utc).isoformat(),
        }
    except kubernetes.client.exceptions.ApiException as e:
        logger.error(f"Failed to create Job: {e}")
        notify_failure(spec, name, f"Failed to create Job: {e.reason}")
        return {
            'phase': 'Failed',
            'message': f"Failed to create Job: {e}",
        }


@kopf.on.field('batch', 'v1', 'jobs', field='status.conditions', labels={'transcodejob': kopf.PRESENT})
def job_status_changed(new, old, namespace, labels, **kwargs):
    """
    Watch for Job completion and update the owning TranscodeJob.
    Only watches Jobs with the 'transcodejob' label (created by this operator).
    """
    if not labels or 'transcodejob' not in labels:
        return

    transcodejob_name = labels['transcodejob']

    for condition in new or []:
        if condition['type'] == 'Complete' and condition['status'] == 'True':
            logger.info(f"Job completed successfully for TranscodeJob {transcodejob_name}")
            update_transcodejob_status(namespace, transcodejob_name, 'Succeeded')
        elif condition['type'] == 'Failed' and condition['status'] == 'True':
            reason = condition.get('reason', 'Unknown')
            message = f"{reason}: {condition.get('message', 'Job failed')}"
            logger.error(f"Job failed for TranscodeJob {transcodejob_name}: {message}")
            update_transcodejob_status(namespace, transcodejob_name, 'Failed', message=message)

            # The worker never reported, so tell the API directly
            spec = read_transcodejob_spec(namespace, transcodejob_name)
            if spec:
                notify_failure(spec, transcodejob_name, message)


def read_transcodejob_spec(namespace: str, name: str):
    api = kubernetes.client.CustomObjectsApi()
    try:
        resource = api.get_namespaced_custom_object(
            group=GROUP, version=VERSION, namespace=namespace, plural=PLURAL, name=name
        )
        return resource.get('spec', {})
    except kubernetes.client.exceptions.ApiException as e:
        logger.error(f"Failed to read TranscodeJob {name}: {e}")
        return None


def notify_failure(spec: Dict[str, Any], name: str, message: str):
    """POST a failure notice to the API's transcoding webhook."""
    webhook_url = spec.get('webhookUrl')
    if not webhook_url:
        logger.warning(f"TranscodeJob {name} has no webhookUrl, failure not reported")
        return

    try:
        response = httpx.post(
            webhook_url,
            json={'jobName': name, 'phase': 'Failed', 'message': message},
            headers={'x-job-secret': JOB_SHARED_SECRET},
            timeout=10.0,
        )
        response.raise_for_status()
        logger.info(f"Reported failure of TranscodeJob {name}")
    except httpx.HTTPError as e:
        logger.error(f"Failed to report failure of TranscodeJob {name}: {e}")


def update_transcodejob_status(namespace: str, name: str, phase: str, message: str = None):
    """Update TranscodeJob status"""
    api = kubernetes.client.CustomObjectsApi()

    status = {'phase': phase}
    if message:
        status['message'] = message
    if phase in ['Succeeded', 'Failed']:
        status['completionTime'] = datetime.now(timezone.utc).isoformat()

    try:
        api.patch_namespaced_custom_object_status(
            group=GROUP,
            version=VERSION,
            namespace=namespace,
            plural=PLURAL,
            name=name,
            body={'status': status}
        )
        logger.info(f"Updated TranscodeJob {name} status to {phase}")
    except kubernetes.client.exceptions.ApiException as e:
        logger.error(f"Failed to update TranscodeJob status: {e}")


@kopf.on.delete(GROUP, VERSION, PLURAL)
def delete_transcode_job(spec, name, namespace, **kwargs):
    """
    Handle deletion of a TranscodeJob.
    The associated Job is deleted automatically via ownerReferences.
    """
    logger.info(f"TranscodeJob {namespace}/{name} deleted")
