import logging

import gitutil
import ocm

logger = logging.getLogger(__name__)

SOURCE_NAME = 'module-sources'
REF_LABEL = 'git.kyma-project.io/ref'
LABEL_VERSION = 'v1'


class GitSourceError(RuntimeError):
    pass


class GitSourcesService:
    def __init__(
        self,
        git_service: gitutil.GitService,
    ):
        self.git_service = git_service

    def add_git_sources(
        self,
        component_descriptor: ocm.ComponentDescriptor,
        repo_url: str,
        module_version: str,
    ) -> ocm.Source:
        '''
        appends the module's source (the latest commit of given git-repository's HEAD) to
        the given component-descriptor, and returns it
        '''
        try:
            commit = self.git_service.get_latest_commit(repo_url)
        except gitutil.LatestCommitError as lce:
            raise GitSourceError(f'failed to get latest commit: {lce}') from lce

        source = ocm.Source(
            name=SOURCE_NAME,
            version=module_version,
            type=ocm.ArtefactType.GITHUB,
            access=ocm.GithubAccess(
                repoUrl=repo_url,
                commit=commit,
            ),
            labels=[
                ocm.Label(
                    name=REF_LABEL,
                    value=gitutil.HEAD_REF,
                    version=LABEL_VERSION,
                ),
            ],
        )
        component_descriptor.component.sources.append(source)

        return source
